"""Workspace registration endpoints.

Chat deletion rules need to know who owns a room. Whoever creates the
workspace registers it here, before any owner-only chat operation is used.

Endpoints:
    POST /workspaces: Register a workspace and its owner
    GET /workspaces/{workspace_id}: Look up a workspace
    DELETE /workspaces/{workspace_id}: Remove a workspace
"""
import logging

import duckdb
from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from .schemas import WorkspaceCreate
from .service import WorkspaceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _service() -> WorkspaceService:
    return WorkspaceService.get_instance()


@router.post("", status_code=201)
async def create_workspace(body: WorkspaceCreate) -> JSONResponse:
    """Register a workspace.

    Args:
        body: Workspace id, name and owner.

    Returns:
        The stored workspace (201 Created), or 409 if the id is taken.
    """
    service = _service()
    if service.get_workspace(body.id) is not None:
        return JSONResponse({"error": "Workspace already exists"}, status_code=409)
    try:
        workspace = service.create_workspace(body.id, owner_id=body.owner_id, name=body.name)
    except duckdb.ConstraintException:
        return JSONResponse({"error": "Workspace already exists"}, status_code=409)
    return JSONResponse(workspace.model_dump(mode="json"), status_code=201)


@router.get("/{workspace_id}")
async def get_workspace(workspace_id: str) -> JSONResponse:
    """Get a registered workspace, or 404 if unknown."""
    workspace = _service().get_workspace(workspace_id)
    if workspace is None:
        return JSONResponse({"error": "Workspace not found"}, status_code=404)
    return JSONResponse(workspace.model_dump(mode="json"))


@router.delete("/{workspace_id}", status_code=204)
async def delete_workspace(workspace_id: str) -> Response:
    """Remove a workspace.

    Its chat log is left in place; owner-only chat operations on the room
    report "Workspace not found" afterwards.
    """
    if not _service().delete_workspace(workspace_id):
        return JSONResponse({"error": "Workspace not found"}, status_code=404)
    logger.info("[Workspaces] Deleted workspace %s", workspace_id)
    return Response(status_code=204)

"""Workspace ownership lookup used by chat authorization.

Provides:
    - Workspace: Ownership record schema.
    - WorkspaceCreate: Registration request body.
    - WorkspaceService: DuckDB-backed owner lookup.
"""
from .schemas import Workspace, WorkspaceCreate
from .service import WorkspaceService

__all__ = ["Workspace", "WorkspaceCreate", "WorkspaceService"]

"""Pydantic schemas for workspace ownership records."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class Workspace(BaseModel):
    """A workspace as seen by the relay.

    Only the fields needed for chat authorization are kept here; the
    workspace file tree and editor state live elsewhere.

    Attributes:
        id: Workspace identifier, also used as the room id.
        name: Human-readable workspace name.
        owner_id: User id of the workspace creator.
        created_at: When the workspace was registered (UTC).
    """
    id: str = Field(..., min_length=1, description="Workspace / room id")
    name: str = Field(default="", description="Workspace name")
    owner_id: str = Field(..., min_length=1, description="Owner user id")
    created_at: Optional[datetime] = Field(None, description="Creation time (UTC)")


class WorkspaceCreate(BaseModel):
    """Request body for registering a workspace."""
    id: str = Field(..., min_length=1, description="Workspace / room id")
    name: str = Field(default="", description="Workspace name")
    owner_id: str = Field(..., min_length=1, description="Owner user id")

    @field_validator("owner_id", mode="before")
    @classmethod
    def coerce_owner_id(cls, value: Any) -> Any:
        # User ids come from an integer primary key in the accounts table.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

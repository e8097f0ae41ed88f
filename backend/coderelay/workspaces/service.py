"""DuckDB-backed workspace ownership lookup.

The relay never creates or edits workspaces on behalf of clients; it only
needs to know who owns a room when a chat deletion is requested. The
``create_workspace`` / ``delete_workspace`` helpers exist for the workspace
CRUD layer and for seeding tests.

Database Schema:
    workspaces table:
        - id: Workspace identifier (room id)
        - name: Display name
        - owner_id: User id of the owner
        - created_at: Registration time (UTC)

Usage:
    service = WorkspaceService.get_instance()
    owner = service.get_owner_id("ws-123")
"""
import logging
from datetime import datetime, timezone
from typing import Optional

import duckdb

from coderelay.config import get_config

from .schemas import Workspace

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class WorkspaceService:
    """Singleton service answering workspace ownership questions.

    Attributes:
        _instance: Singleton instance of the service.
        _db_path: Path to the DuckDB database file.
    """

    _instance: Optional["WorkspaceService"] = None

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or get_config().database.path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "WorkspaceService":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close the connection and drop the singleton (used by tests)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS workspaces (
                id VARCHAR PRIMARY KEY,
                name VARCHAR NOT NULL,
                owner_id VARCHAR NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """)

    def create_workspace(self, workspace_id: str, owner_id: str, name: str = "") -> Workspace:
        """Register a workspace and its owner.

        Args:
            workspace_id: Workspace / room identifier.
            owner_id: User id of the owner.
            name: Optional display name.

        Returns:
            The stored workspace.
        """
        workspace = Workspace(
            id=workspace_id,
            name=name,
            owner_id=str(owner_id),
            created_at=_utcnow(),
        )
        self._get_connection().execute(
            "INSERT INTO workspaces (id, name, owner_id, created_at) VALUES (?, ?, ?, ?)",
            [workspace.id, workspace.name, workspace.owner_id, workspace.created_at],
        )
        logger.info(f"[Workspaces] Registered workspace {workspace_id} owned by {owner_id}")
        return workspace

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        row = self._get_connection().execute(
            "SELECT id, name, owner_id, created_at FROM workspaces WHERE id = ?",
            [workspace_id],
        ).fetchone()
        if row is None:
            return None
        return Workspace(id=row[0], name=row[1], owner_id=row[2], created_at=row[3])

    def get_owner_id(self, workspace_id: str) -> Optional[str]:
        """Resolve the owner of a room.

        Args:
            workspace_id: Workspace / room identifier.

        Returns:
            The owner's user id, or None if the workspace does not exist.
        """
        row = self._get_connection().execute(
            "SELECT owner_id FROM workspaces WHERE id = ?",
            [workspace_id],
        ).fetchone()
        return row[0] if row else None

    def delete_workspace(self, workspace_id: str) -> bool:
        """Remove a workspace. Returns True if a row was deleted."""
        if self.get_owner_id(workspace_id) is None:
            return False
        self._get_connection().execute(
            "DELETE FROM workspaces WHERE id = ?", [workspace_id]
        )
        return True

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

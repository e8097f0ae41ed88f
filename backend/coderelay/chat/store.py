"""DuckDB-based chat message storage.

This module persists chat messages per room. The store is the only place
where message ids and creation timestamps are assigned; callers never pass
their own. The service implements the singleton pattern so a single
connection is shared by every WebSocket handler in the process.

Database Schema:
    chat_messages table:
        - id: Auto-incrementing primary key (sequence)
        - room_id: Workspace/room identifier
        - user_id: Author user id
        - display_name: Author display name
        - body: Message text
        - created_at: Storage-assigned creation time (UTC)

Thread Safety:
    The DuckDB connection is NOT thread-safe. All calls are made from the
    event loop thread, which serializes them.

Usage:
    store = ChatMessageStore.get_instance()
    message = store.insert_message("ws-1", "42", "alice", "hi")
    history = store.list_messages("ws-1")
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

import duckdb

from coderelay.config import get_config

from .schemas import ChatMessage

logger = logging.getLogger(__name__)

_COLUMNS = "id, room_id, user_id, display_name, body, created_at"


def utcnow() -> datetime:
    """Naive UTC now, the format stored in ``created_at``."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _row_to_message(row) -> ChatMessage:
    return ChatMessage(
        id=row[0],
        roomId=row[1],
        userId=row[2],
        displayName=row[3],
        body=row[4],
        createdAt=row[5],
    )


class ChatMessageStore:
    """Singleton store for chat messages in DuckDB.

    Attributes:
        _instance: Singleton instance of the store.
        _db_path: Path to the DuckDB database file.
        clock: Source of ``created_at`` values.
    """

    _instance: Optional["ChatMessageStore"] = None

    def __init__(
        self,
        db_path: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the store, creating schema if needed.

        Args:
            db_path: Path to DuckDB file. Defaults to the configured path.
            clock: Callable returning naive UTC datetimes.
        """
        self._db_path = db_path or get_config().database.path
        self.clock = clock
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "ChatMessageStore":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).

        Returns:
            The singleton ChatMessageStore instance.
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance.

        Closes the database connection and clears the instance.
        Primarily used for testing to ensure a clean state.
        """
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Create the sequence and table (idempotent)."""
        conn = self._get_connection()
        conn.execute("""
            CREATE SEQUENCE IF NOT EXISTS chat_messages_seq START 1;
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                id BIGINT DEFAULT nextval('chat_messages_seq') PRIMARY KEY,
                room_id VARCHAR NOT NULL,
                user_id VARCHAR NOT NULL,
                display_name VARCHAR NOT NULL,
                body VARCHAR NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """)

    def insert_message(
        self, room_id: str, user_id: str, display_name: str, body: str
    ) -> ChatMessage:
        """Persist a message, assigning its id and creation time.

        Returns:
            The stored message exactly as it will be read back.
        """
        created_at = self.clock()
        row = self._get_connection().execute(
            f"""
            INSERT INTO chat_messages (room_id, user_id, display_name, body, created_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING {_COLUMNS}
            """,
            [room_id, user_id, display_name, body, created_at],
        ).fetchone()
        return _row_to_message(row)

    def list_messages(self, room_id: str) -> List[ChatMessage]:
        """All messages of a room, oldest first (ties broken by id)."""
        rows = self._get_connection().execute(
            f"""
            SELECT {_COLUMNS}
            FROM chat_messages
            WHERE room_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            [room_id],
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    def get_message(self, message_id: int, room_id: str) -> Optional[ChatMessage]:
        """Load one message, scoped to its room."""
        row = self._get_connection().execute(
            f"SELECT {_COLUMNS} FROM chat_messages WHERE id = ? AND room_id = ?",
            [message_id, room_id],
        ).fetchone()
        return _row_to_message(row) if row else None

    def delete_message(self, message_id: int, room_id: str) -> None:
        self._get_connection().execute(
            "DELETE FROM chat_messages WHERE id = ? AND room_id = ?",
            [message_id, room_id],
        )

    def delete_all_messages(self, room_id: str) -> None:
        self._get_connection().execute(
            "DELETE FROM chat_messages WHERE room_id = ?", [room_id]
        )
        logger.info(f"[ChatStore] Cleared all messages for room {room_id}")

    def count_messages(self, room_id: str) -> int:
        row = self._get_connection().execute(
            "SELECT COUNT(*) FROM chat_messages WHERE room_id = ?", [room_id]
        ).fetchone()
        return int(row[0])

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

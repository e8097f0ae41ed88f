"""Chat module: persisted room chat with time-boxed deletion.

Provides:
    - ChatMessage: Canonical persisted message.
    - ChatMessageStore: DuckDB storage (assigns ids and timestamps).
    - ChatService: Posting, history and deletion authorization.
"""
from .schemas import ChatMessage
from .service import ChatService
from .store import ChatMessageStore

__all__ = ["ChatMessage", "ChatMessageStore", "ChatService"]

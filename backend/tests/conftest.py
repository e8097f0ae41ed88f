"""Shared test fixtures and configuration for backend tests."""
import pytest

from coderelay.config import AppSettings, DatabaseSettings, set_config

# Pin settings before the app module reads them (CORS origins, db path).
set_config(AppSettings(database=DatabaseSettings(path=":memory:")))

from coderelay.chat.store import ChatMessageStore  # noqa: E402
from coderelay.rooms import hub  # noqa: E402
from coderelay.workspaces.service import WorkspaceService  # noqa: E402


class FakeWebSocket:
    """Stands in for a FastAPI WebSocket: records every JSON frame sent."""

    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.fixture(autouse=True)
def in_memory_databases():
    """Give every test fresh in-memory chat and workspace databases."""
    set_config(AppSettings(database=DatabaseSettings(path=":memory:")))
    ChatMessageStore.reset_instance()
    WorkspaceService.reset_instance()
    ChatMessageStore.get_instance(db_path=":memory:")
    WorkspaceService.get_instance(db_path=":memory:")
    yield
    ChatMessageStore.reset_instance()
    WorkspaceService.reset_instance()


@pytest.fixture(autouse=True)
def clean_hub():
    """Clear relay state after each test to avoid interference."""
    yield
    hub.reset()


@pytest.fixture
def make_socket():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


@pytest.fixture
def store():
    return ChatMessageStore.get_instance()


@pytest.fixture
def workspaces():
    return WorkspaceService.get_instance()

"""CodeRelay Backend Application.

This is the main entry point for the CodeRelay relay service. CodeRelay keeps
collaborators of a shared workspace in sync: code edits, cursors, presence
and a persisted chat log all flow through one WebSocket per client.

Modules:
    - rooms: connection registry, room directory, event relay, presence
    - chat: DuckDB-backed chat log and deletion rules
    - workspaces: workspace registration and ownership lookup
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coderelay.chat.router import router as chat_router
from coderelay.chat.store import ChatMessageStore
from coderelay.config import get_config
from coderelay.rooms.router import router as rooms_router
from coderelay.workspaces.router import router as workspaces_router
from coderelay.workspaces.service import WorkspaceService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

for _noisy in (
    "uvicorn.access",
    "httpx",
    "httpcore",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    # Open the database eagerly so schema errors surface at startup.
    ChatMessageStore.get_instance()
    WorkspaceService.get_instance()
    logger.info("Database ready at %s", config.database.path)

    yield  # Application runs here

    # Shutdown
    ChatMessageStore.reset_instance()
    WorkspaceService.reset_instance()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="CodeRelay API",
    description="Real-time relay for collaborative code editing and chat",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(rooms_router)
app.include_router(chat_router)
app.include_router(workspaces_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "coderelay.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level,
    )

"""FastAPI web application for the Clone party game."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_default_config
from web.game_manager import GameManager

from web.endpoints.system import router as system_router
from web.endpoints.rooms import router as rooms_router, ws_router as rooms_ws_router

logger: logging.Logger = logging.getLogger(__name__)

# Global game manager, created on startup (or first use)
game_manager: GameManager | None = None


def get_game_manager() -> GameManager:
    """Return the global game manager, creating it from the default config if needed."""
    global game_manager
    if game_manager is None:
        game_manager = GameManager(get_default_config())
    return game_manager


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan - startup and shutdown."""
    manager = get_game_manager()
    logger.info(f"Game manager ready (store backend: {manager.config.store.backend})")

    yield

    for room_id, connections in manager.connections.items():
        if connections:
            logger.info(f"Shutting down with {len(connections)} open connection(s) in {room_id}")


def get_allowed_origins() -> list[str] | None:
    """Get CORS origins from environment or use development defaults."""
    env_origins: str | None = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        origins = [origin.strip() for origin in env_origins.split(",")]
        return origins
    return None


# FastAPI app
app: FastAPI = FastAPI(
    title="Clone Party Game",
    description="Round coordinator for the Clone human-or-clone guessing game",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware setup
allowed_origins: list[str] | None = get_allowed_origins()

if allowed_origins:

    logging.info(f"Setting CORS allowed origins: {allowed_origins}")

    # Production: Use specific origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:

    logging.info("No ALLOWED_ORIGINS set, using development CORS settings")

    # Development: Allow any localhost/127.0.0.1
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(system_router, prefix="/v1")
app.include_router(rooms_router, prefix="/v1")
app.include_router(rooms_ws_router, prefix="/v1")

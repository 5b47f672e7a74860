"""FastAPI web application for the research debate engine."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_default_config
from web.endpoints.debates import router as debates_router, ws_router as debates_ws_router
from web.session_manager import SessionManager

logger: logging.Logger = logging.getLogger(__name__)

# Global session manager; tests may install their own before startup
session_manager: SessionManager | None = None


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan - startup and shutdown."""
    global session_manager

    if session_manager is None:
        config = get_default_config()
        session_manager = SessionManager.from_config(config)
        logger.info("Session manager initialized from configuration")

    yield

    logger.info("Cancelling running debates...")
    await session_manager.shutdown()


def get_allowed_origins() -> list[str] | None:
    """Get CORS origins from environment or use development defaults."""
    env_origins: str | None = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        origins = [origin.strip() for origin in env_origins.split(",")]
        return origins
    return None


app: FastAPI = FastAPI(
    title="Research Debate Engine",
    description="Structured multi-perspective debates about research documents",
    version="1.0.0",
    lifespan=lifespan,
)

allowed_origins: list[str] | None = get_allowed_origins()

if allowed_origins:
    logger.info(f"Setting CORS allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    logger.info("No ALLOWED_ORIGINS set, using development CORS settings")

    # Development: Allow any localhost/127.0.0.1
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(debates_router, prefix="/v1")
app.include_router(debates_ws_router, prefix="/v1")

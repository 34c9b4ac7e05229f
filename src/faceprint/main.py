"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from faceprint.api.routes import router
from faceprint.config import get_settings
from faceprint.engine import FaceTemplateEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: open the engine on startup, close it on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting Faceprint (device=%s, max_concurrent=%s, landmarks=%s, embedding=%s)",
        settings.device,
        settings.max_concurrent,
        settings.landmark_model,
        settings.embedding_model,
    )

    engine = FaceTemplateEngine.open(settings)
    app.state.engine = engine

    logger.info("Faceprint ready")
    yield

    logger.info("Shutting down Faceprint")
    await engine.close()
    logger.info("Faceprint shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Faceprint",
        description="Face template extraction and comparison API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("faceprint.main:app", host=settings.host, port=settings.port)

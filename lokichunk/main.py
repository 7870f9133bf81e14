"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from common.versioning import get_api_prefix

from lokichunk import __version__
from lokichunk.config import get_settings
from lokichunk.logging_config import setup_logging
from lokichunk.routers import app_info, chunks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    settings = get_settings()
    setup_logging(settings.log_dir, settings.debug)
    logging.getLogger("lokichunk.system").info(
        "Chunk inspector %s started, block_error_policy=%s",
        __version__,
        settings.block_error_policy.value,
    )
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI app with the chunk inspection routes under the API prefix.
    """
    app = FastAPI(
        title="lokichunk",
        description="Decoder and inspector for Loki log chunk files",
        version=__version__,
        lifespan=lifespan,
    )

    api_prefix = get_api_prefix()
    app.include_router(app_info.router, prefix=api_prefix, tags=["info"])
    app.include_router(chunks.router, prefix=api_prefix, tags=["chunks"])
    return app


app = create_app()

#!/usr/bin/env python
"""FastAPI server exposing the caption store's read operations."""

import logging
import sys
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routers import core, videos
from services.errors import (
    CorruptShardError,
    DataRootError,
    IndexCorruptError,
    InvalidVideoIdError,
    VideoNotFoundError,
)
from utils.config import load_config

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def invalid_id_handler(request: Request, exc: InvalidVideoIdError) -> JSONResponse:
    return _error(400, "Invalid video ID format")


async def not_found_handler(request: Request, exc: VideoNotFoundError) -> JSONResponse:
    return _error(404, str(exc) or "Video not found")


async def corrupt_shard_handler(request: Request, exc: CorruptShardError) -> JSONResponse:
    logger.error(f"{request.url.path}: {exc}")
    return _error(500, "Stored data is corrupt")


async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Store unavailable: {exc}")
    return _error(503, "Database not available")


def create_app(config: dict | None = None) -> FastAPI:
    """Build the FastAPI application."""
    config = config or load_config()

    app = FastAPI(title="YouTube Subtitles API", version=core.API_VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("cors_origins") or ["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(InvalidVideoIdError, invalid_id_handler)
    app.add_exception_handler(VideoNotFoundError, not_found_handler)
    app.add_exception_handler(CorruptShardError, corrupt_shard_handler)
    app.add_exception_handler(DataRootError, store_unavailable_handler)
    app.add_exception_handler(IndexCorruptError, store_unavailable_handler)

    app.include_router(core.router)
    app.include_router(videos.router)
    return app


app = create_app()

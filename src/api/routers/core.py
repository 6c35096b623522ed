"""Core routes for the caption API (root and health check)."""

from api.schemas import HealthResponse, RootResponse
from fastapi import APIRouter
from models.shard_index import utc_now_iso

router = APIRouter(tags=["Core"])

API_NAME = "YouTube Subtitles API"
API_VERSION = "1.0.0"

ENDPOINTS = {
    "GET /health": "Health check",
    "GET /stats": "Database statistics",
    "GET /video/:id": "Get video data with captions",
    "GET /video/:id/metadata": "Get video metadata only",
    "GET /video/:id/captions": "Get video captions (all languages)",
    "GET /video/:id/captions?lang=en": "Get captions for specific language",
    "GET /video/:id/captions/:lang/srt": "Get captions in SRT format",
    "GET /video/:id/captions/:lang/txt": "Get captions in plain text",
    "GET /search?q=query": "Search videos by title/author",
    "GET /videos?limit=50&offset=0": "List videos with pagination",
    "GET /videos?author=username": "Filter videos by author",
    "GET /videos?min_views=1000": "Filter by minimum view count",
    "GET /videos?max_duration=300": "Filter by maximum duration (seconds)",
    "GET /random?count=10": "Get random videos",
    "GET /queue": "Pending work from the queue file",
}


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name, version and endpoint list.",
)
async def root() -> dict:
    """Root endpoint."""
    return {"name": API_NAME, "version": API_VERSION, "endpoints": ENDPOINTS}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status.",
)
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "timestamp": utc_now_iso()}

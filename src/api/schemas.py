"""Pydantic response models for the caption API."""

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Response Models
# =============================================================================


class ErrorResponse(BaseModel):
    """Error body returned with 4xx/5xx responses."""

    error: str

    model_config = {"json_schema_extra": {"examples": [{"error": "Video not found"}]}}


class RootResponse(BaseModel):
    """API description."""

    name: str
    version: str
    endpoints: dict[str, str]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str

    model_config = {
        "json_schema_extra": {"examples": [{"status": "ok", "timestamp": "2024-01-01T00:00:00.000Z"}]}
    }


class StatsResponse(BaseModel):
    """Store statistics from the master index."""

    total_videos: int = Field(ge=0)
    shards: int = Field(ge=0)
    last_updated: str | None = None


class VideoListResponse(BaseModel):
    """One page of the filtered video list."""

    videos: list[dict[str, Any]]
    total: int
    limit: int
    offset: int
    errors: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """One page of search results."""

    query: str
    results: list[dict[str, Any]]
    total: int
    limit: int
    offset: int
    errors: list[str] = Field(default_factory=list)


class RandomResponse(BaseModel):
    """Randomly sampled videos."""

    videos: list[dict[str, Any]]
    count: int


class QueueCounts(BaseModel):
    total_queued: int
    pending_processing: int
    already_processed: int


class ProcessedCounts(BaseModel):
    total_videos: int
    last_updated: str


class QueueStatusResponse(BaseModel):
    """Pending work according to the queue file."""

    queue: QueueCounts
    processed: ProcessedCounts
    pending_video_ids: list[str]

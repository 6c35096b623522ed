"""Video read routes: lookup, captions, list, search, random, stats, queue.

Handlers are plain ``def`` functions because every one of them does blocking
shard I/O; FastAPI runs them in its threadpool.
"""

import logging

from api.dependencies import get_page_limits, get_queue_reconciler, get_reader
from api.schemas import (
    ErrorResponse,
    QueueStatusResponse,
    RandomResponse,
    SearchResponse,
    StatsResponse,
    VideoListResponse,
)
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from services.caption_formats import to_srt, to_txt
from services.errors import VideoNotFoundError
from services.queue_reconciler import QueueReconciler
from services.record_reader import RecordReader, VideoFilter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Videos"])

VIDEO_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid video ID format"},
    404: {"model": ErrorResponse, "description": "Video or captions not found"},
}


def _page_size(limit: int | None) -> int:
    default, maximum = get_page_limits()
    if limit is None:
        return default
    return min(limit, maximum)


@router.get("/stats", response_model=StatsResponse, summary="Database statistics")
def stats(reader: RecordReader = Depends(get_reader)) -> dict:
    return reader.stats()


@router.get("/video/{video_id}", responses=VIDEO_ERRORS, summary="Video data with captions")
def get_video(video_id: str, reader: RecordReader = Depends(get_reader)) -> dict:
    return reader.get(video_id).to_dict()


@router.get("/video/{video_id}/metadata", responses=VIDEO_ERRORS, summary="Video metadata without captions")
def get_video_metadata(video_id: str, reader: RecordReader = Depends(get_reader)) -> dict:
    return reader.get(video_id).metadata().to_dict()


@router.get("/video/{video_id}/captions", responses=VIDEO_ERRORS, summary="Caption tracks, all or one language")
def get_captions(
    video_id: str,
    lang: str | None = None,
    reader: RecordReader = Depends(get_reader),
) -> dict:
    captions = reader.get_captions(video_id, lang)
    return {code: track.to_dict() for code, track in captions.items()}


@router.get(
    "/video/{video_id}/captions/{lang}/srt",
    response_class=PlainTextResponse,
    responses=VIDEO_ERRORS,
    summary="Captions in SubRip format",
)
def get_captions_srt(video_id: str, lang: str, reader: RecordReader = Depends(get_reader)) -> str:
    track = _track(reader, video_id, lang)
    return to_srt(track.segments)


@router.get(
    "/video/{video_id}/captions/{lang}/txt",
    response_class=PlainTextResponse,
    responses=VIDEO_ERRORS,
    summary="Captions as plain text",
)
def get_captions_txt(video_id: str, lang: str, reader: RecordReader = Depends(get_reader)) -> str:
    track = _track(reader, video_id, lang)
    return to_txt(track.segments)


def _track(reader: RecordReader, video_id: str, lang: str):
    try:
        return reader.get_captions(video_id, lang)[lang]
    except VideoNotFoundError as e:
        raise HTTPException(status_code=404, detail="Captions not found") from e


@router.get("/search", response_model=SearchResponse, responses={400: {"model": ErrorResponse}}, summary="Search videos by title/author")
def search(
    q: str | None = None,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    reader: RecordReader = Depends(get_reader),
) -> dict:
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail='Query parameter "q" is required')

    limit = _page_size(limit)
    page = reader.search(q, limit=limit, offset=offset)
    return {
        "query": q,
        "results": [r.to_dict() for r in page.records],
        "total": page.total,
        "limit": limit,
        "offset": offset,
        "errors": page.errors,
    }


@router.get("/videos", response_model=VideoListResponse, summary="List videos with filters")
def list_videos(
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    author: str | None = None,
    min_views: int | None = Query(None, ge=0),
    max_duration: int | None = Query(None, ge=0),
    reader: RecordReader = Depends(get_reader),
) -> dict:
    limit = _page_size(limit)
    video_filter = VideoFilter(author=author, min_views=min_views, max_duration=max_duration)
    page = reader.list_videos(video_filter, limit=limit, offset=offset)
    return {
        "videos": [r.to_dict() for r in page.records],
        "total": page.total,
        "limit": limit,
        "offset": offset,
        "errors": page.errors,
    }


@router.get("/random", response_model=RandomResponse, summary="Random videos")
def random_videos(
    count: int = Query(10, ge=0),
    reader: RecordReader = Depends(get_reader),
) -> dict:
    _, maximum = get_page_limits()
    page = reader.random_videos(min(count, maximum))
    return {"videos": [r.to_dict() for r in page.records], "count": len(page.records)}


@router.get("/queue", response_model=QueueStatusResponse, summary="Queue status")
def queue_status(
    reader: RecordReader = Depends(get_reader),
    reconciler: QueueReconciler = Depends(get_queue_reconciler),
) -> dict:
    return reconciler.status(reader.store.load_index())

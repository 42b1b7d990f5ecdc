"""
blocktint v1 API Routes
Block color lookups for renderers and cache reload.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from blocktint.config import config
from blocktint.schemas import (
    ColorListResponse, ColorResponse, EntryFailureInfo, ErrorResponse,
    MetricsResponse, ReloadResponse
)
from blocktint.services.archive import ArchiveOpenError
from blocktint.services.cache import CacheEntry
from blocktint.services.colors.utils import TRANSPARENT, Color, pack_rgba, rgb_to_hex, rgb_to_hsv
from blocktint.services.orchestrator import BlockColorCache
from blocktint.utils.ids import BlockID
from blocktint.utils.logging import get_logger
from blocktint.utils.metrics import get_metrics

logger = get_logger("api")
router = APIRouter(prefix="/v1", tags=["Block colors"])

# Process-wide cache, filled by /v1/reload
_block_colors = BlockColorCache()


def get_block_colors() -> BlockColorCache:
    """Dependency returning the shared block color cache."""
    return _block_colors


def _color_response(key: BlockID, color: Color, entry: Optional[CacheEntry] = None) -> ColorResponse:
    return ColorResponse(
        id=key.id,
        meta=key.meta,
        known=entry is not None,
        hex=rgb_to_hex(color),
        rgba=list(color),
        packed=pack_rgba(color),
        hsv=list(rgb_to_hsv(color)),
        checksum=entry.checksum if entry is not None else None
    )


@router.get("/colors", response_model=ColorListResponse)
def list_colors(cache: BlockColorCache = Depends(get_block_colors)):
    """All cached block colors, sorted by (id, meta)."""
    colors = [_color_response(key, entry.color, entry) for key, entry in cache.store.items()]
    return ColorListResponse(count=len(colors), colors=colors)


@router.get("/colors/{block_id}", response_model=ColorResponse)
def get_color(
    block_id: int = Path(..., ge=0, description="Numeric block id"),
    meta: int = Query(0, ge=0, description="Block meta value"),
    cache: BlockColorCache = Depends(get_block_colors)
):
    """
    Color of one block.

    Unknown blocks are answered with the transparent sentinel and
    ``known=false`` rather than 404.
    """
    key = BlockID(block_id, meta)
    entry = cache.store.get(key)
    color = entry.color if entry is not None else TRANSPARENT
    return _color_response(key, color, entry)


@router.post(
    "/reload",
    response_model=ReloadResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}
)
def reload_colors(cache: BlockColorCache = Depends(get_block_colors)):
    """Reconcile the configured archive against its persisted cache."""
    if not config.ARCHIVE_PATH:
        raise HTTPException(status_code=400, detail="BLOCKTINT_ARCHIVE_PATH is not configured")

    try:
        result = cache.load(config.ARCHIVE_PATH, config.CACHE_PATH)
    except ArchiveOpenError as e:
        logger.bind(archive_path=e.path).error(str(e))
        raise HTTPException(status_code=503, detail=str(e))

    return ReloadResponse(
        archive_path=cache.archive_path,
        cache_path=cache.cache_path,
        entries=len(result.store),
        hits=result.hits,
        misses=result.misses,
        skipped=len(result.skipped),
        shadowed=len(result.shadowed),
        was_modified=result.was_modified,
        failures=[
            EntryFailureInfo(
                name=failure.name,
                block_id=str(failure.key) if failure.key is not None else None,
                reason=failure.reason
            )
            for failure in result.failures
        ]
    )


@router.get("/metrics", response_model=MetricsResponse)
def metrics_summary():
    """In-process counters and timings."""
    if not config.METRICS_ENABLED:
        raise HTTPException(status_code=404, detail="Metrics are disabled")
    return MetricsResponse(**get_metrics().get_summary())

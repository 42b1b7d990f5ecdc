"""
blocktint Schemas
Pydantic models for the persisted cache record and API responses.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, StrictInt


# ============================================================================
# PERSISTED CACHE
# ============================================================================

class CacheRecord(BaseModel):
    """One value of the persisted cache document."""
    model_config = ConfigDict(extra="ignore")

    crc: StrictInt = Field(..., ge=0, le=0xFFFFFFFF, description="CRC-32 of the archive entry")
    color: StrictInt = Field(..., ge=0, le=0xFFFFFFFF, description="Color packed as RGBA8888")


# ============================================================================
# API RESPONSES
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = Field(True, description="Service health status")
    version: str = Field(..., description="Service version")
    service: str = Field("blocktint", description="Service name")
    loaded: bool = Field(..., description="Whether a texture archive has been loaded")


class ColorResponse(BaseModel):
    """Color of a single block."""
    id: int = Field(..., ge=0, description="Block id")
    meta: int = Field(..., ge=0, description="Block meta value")
    known: bool = Field(..., description="False when the block is not in the cache")
    hex: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$", description="Hex color code #RRGGBB")
    rgba: List[int] = Field(..., min_length=4, max_length=4, description="[r, g, b, a] channels")
    packed: int = Field(..., description="Color packed as RGBA8888")
    hsv: List[int] = Field(..., min_length=3, max_length=3, description="[hue degrees, saturation, value]")
    checksum: Optional[int] = Field(None, description="CRC-32 the color was computed from")


class ColorListResponse(BaseModel):
    """All cached block colors, sorted by (id, meta)."""
    count: int
    colors: List[ColorResponse]


class EntryFailureInfo(BaseModel):
    """An archive entry whose color could not be determined."""
    name: str
    block_id: Optional[str] = None
    reason: str


class ReloadResponse(BaseModel):
    """Outcome of a reconciliation pass."""
    archive_path: str
    cache_path: str
    entries: int
    hits: int
    misses: int
    skipped: int
    shadowed: int = 0
    was_modified: bool
    failures: List[EntryFailureInfo] = []


class MetricsResponse(BaseModel):
    """In-process counters and timings."""
    uptime_seconds: float
    counters: Dict[str, int]
    timing_stats: Dict[str, Dict[str, float]]


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str = Field(..., description="Error message")

"""
blocktint Configuration
Manages environment variables and defaults for the block color cache.
"""
import os
from typing import Literal, Optional


class Config:
    """Configuration class for blocktint services."""

    # Inputs and persisted cache
    ARCHIVE_PATH: Optional[str] = os.environ.get("BLOCKTINT_ARCHIVE_PATH")
    CACHE_PATH: Optional[str] = os.environ.get("BLOCKTINT_CACHE_PATH")

    # Color extraction
    COLOR_TOLERANCE: int = int(os.environ.get("BLOCKTINT_COLOR_TOLERANCE", "20"))
    COLOR_POLICY: Literal["mode", "mean"] = os.environ.get("BLOCKTINT_COLOR_POLICY", "mode")

    # Logging
    LOG_LEVEL: str = os.environ.get("BLOCKTINT_LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.environ.get("BLOCKTINT_LOG_FILE")
    LOG_SERIALIZE: bool = bool(int(os.environ.get("BLOCKTINT_LOG_SERIALIZE", "0")))

    # Observability
    METRICS_ENABLED: bool = bool(int(os.environ.get("BLOCKTINT_METRICS_ENABLED", "1")))

    # Images we know how to decode
    SUPPORTED_EXTENSIONS = {".png", ".gif", ".bmp", ".tga", ".img"}

    @classmethod
    def validate_tolerance(cls, tolerance: int) -> bool:
        """Validate bucket tolerance parameter."""
        return 1 <= tolerance <= 256

    @classmethod
    def default_cache_path(cls, archive_path: str) -> str:
        """Cache file used when none is configured: next to the archive."""
        root, _ = os.path.splitext(archive_path.rstrip("/\\"))
        return f"{root}.colors.json"


# Global config instance
config = Config()

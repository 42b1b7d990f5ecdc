"""
blocktint World Regions
Locates region files of a saved world and measures the area they cover.

Region files are named "r.<x>.<z>.mca"; each region spans 32 x 32 chunks of
16 x 16 blocks.
"""
import re
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

from blocktint.utils.logging import get_logger

logger = get_logger("world")

REGION_BLOCKS = 32 * 16

_REGION_RE = re.compile(r"^r\.(-?\d+)\.(-?\d+)\.mca$")

RegionCoord = Tuple[int, int]


class RegionFolderError(RuntimeError):
    """Raised when a world has no readable region folder."""
    pass


def parse_region_filename(filename: str) -> Optional[RegionCoord]:
    """
    Parse region coordinates from a file name.

    Args:
        filename: e.g. "r.1.-2.mca"

    Returns:
        (x, z), or None for anything that is not a well-formed region name
    """
    match = _REGION_RE.match(filename)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def scan_regions(world_root: Union[str, Path]) -> Dict[RegionCoord, Path]:
    """
    Map region coordinates to region files under ``<world_root>/region``.

    Raises:
        RegionFolderError: If the region folder does not exist
    """
    region_dir = Path(world_root) / "region"
    if not region_dir.is_dir():
        raise RegionFolderError(f"Could not load region folder in {region_dir}")

    regions = {}
    for path in sorted(region_dir.iterdir()):
        coords = parse_region_filename(path.name)
        if coords is None:
            logger.debug(f"Ignoring non-region file {path.name}")
            continue
        regions[coords] = path
    return regions


def world_extent(coords: Iterable[RegionCoord]) -> Tuple[int, int]:
    """
    Size in blocks of the rectangle covering every region.

    Returns:
        (width along x, depth along z); (0, 0) when there are no regions
    """
    coords = list(coords)
    if not coords:
        return 0, 0

    xs = [x for x, _ in coords]
    zs = [z for _, z in coords]
    return REGION_BLOCKS * (max(xs) - min(xs) + 1), REGION_BLOCKS * (max(zs) - min(zs) + 1)

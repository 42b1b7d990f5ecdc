"""
blocktint Fingerprinting Utilities
Content checksums used as the freshness token of cache entries.
"""
import zlib
from pathlib import Path
from typing import Union


def compute_file_crc32(path: Union[str, Path], chunk_size: int = 65536) -> int:
    """
    Compute the CRC-32 of a file on disk, read in chunks.

    Uses the same polynomial as the zip format, so a loose file's checksum
    matches the CRC its zip directory entry would report.

    Args:
        path: File to checksum
        chunk_size: Bytes read per iteration

    Returns:
        Unsigned 32-bit checksum
    """
    crc = 0
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            crc = zlib.crc32(chunk, crc)
    return crc & 0xFFFFFFFF

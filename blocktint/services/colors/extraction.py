"""
Representative color extraction for block textures.

This module implements the two color policies blocktint knows about:

- "mode": group opaque pixels into approximate-color buckets and return the
  bucket that collected the most pixels. Tolerates anti-aliased edges and
  small highlights, and is the default.
- "mean": arithmetic mean of all opaque pixels. Kept as a documented
  alternative; it gives different answers on multi-colored textures.

Both take the flat interleaved RGBA buffer an image decoder produces.
"""

from functools import partial
from typing import Callable

import numpy as np
from loguru import logger

from .utils import Color, TRANSPARENT
from ..imaging import DecodeError

DEFAULT_TOLERANCE = 20

Extractor = Callable[[bytes, int, int], Color]


def opaque_pixels(pixels: bytes, width: int, height: int) -> np.ndarray:
    """
    View an RGBA buffer as RGB rows, dropping fully transparent pixels.

    Args:
        pixels: Interleaved RGBA bytes, row-major
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        Array (N, 3) uint8 of the pixels whose alpha is not 0, in buffer order

    Raises:
        DecodeError: If the buffer length is not width * height * 4
    """
    if width < 0 or height < 0:
        raise DecodeError(f"Invalid dimensions {width}x{height}")

    expected = width * height * 4
    if len(pixels) != expected:
        raise DecodeError(
            f"Pixel buffer holds {len(pixels)} bytes, expected {expected} for {width}x{height} RGBA"
        )

    rgba = np.frombuffer(pixels, dtype=np.uint8).reshape(-1, 4)
    return rgba[rgba[:, 3] != 0, :3]


def extract_color(pixels: bytes, width: int, height: int,
                  tolerance: int = DEFAULT_TOLERANCE) -> Color:
    """
    Derive the most used color of a texture.

    Each opaque pixel joins the first existing bucket whose key differs from
    it by less than ``tolerance`` on every one of R, G and B, otherwise it
    opens a new bucket keyed by its own color. Keys never move once created,
    so the result depends on pixel order. The winning bucket is the one with
    the highest count; ties go to the bucket created first.

    Args:
        pixels: Interleaved RGBA bytes
        width: Image width in pixels
        height: Image height in pixels
        tolerance: Per-channel bucket tolerance

    Returns:
        The winning bucket key with alpha forced to 255, or TRANSPARENT when
        every pixel is fully transparent

    Raises:
        DecodeError: If the buffer length does not match the dimensions
    """
    rgb = opaque_pixels(pixels, width, height)
    if rgb.shape[0] == 0:
        return TRANSPARENT

    # Collapse exact duplicates first. A repeated color always lands in the
    # bucket its first occurrence chose, so visiting unique colors in order of
    # first appearance with their counts is the same as visiting every pixel.
    packed = (rgb[:, 0].astype(np.uint32) << 16) | (rgb[:, 1].astype(np.uint32) << 8) | rgb[:, 2]
    _, first_index, counts = np.unique(packed, return_index=True, return_counts=True)
    order = np.argsort(first_index, kind="stable")

    keys = np.empty((len(order), 3), dtype=np.int16)
    totals = np.zeros(len(order), dtype=np.int64)
    n_buckets = 0

    for idx in order:
        color = rgb[first_index[idx]].astype(np.int16)
        if n_buckets:
            near = np.all(np.abs(keys[:n_buckets] - color) < tolerance, axis=1)
            matches = np.flatnonzero(near)
            if matches.size:
                totals[matches[0]] += counts[idx]
                continue
        keys[n_buckets] = color
        totals[n_buckets] = counts[idx]
        n_buckets += 1

    winner = int(np.argmax(totals[:n_buckets]))
    r, g, b = (int(c) for c in keys[winner])

    logger.debug(
        f"Bucketed {rgb.shape[0]} opaque pixels into {n_buckets} buckets, "
        f"winner #{winner} with {int(totals[winner])} pixels"
    )
    return Color(r, g, b, 255)


def extract_mean_color(pixels: bytes, width: int, height: int) -> Color:
    """Average of the opaque pixels, alpha forced to 255; TRANSPARENT if none."""
    rgb = opaque_pixels(pixels, width, height)
    if rgb.shape[0] == 0:
        return TRANSPARENT

    r, g, b = (int(c) for c in np.rint(rgb.mean(axis=0)))
    return Color(r, g, b, 255)


def get_extractor(policy: str = "mode", tolerance: int = DEFAULT_TOLERANCE) -> Extractor:
    """
    Resolve a color policy name to an extractor callable.

    Raises:
        ValueError: For an unknown policy
    """
    if policy == "mode":
        return partial(extract_color, tolerance=tolerance)
    if policy == "mean":
        return extract_mean_color
    raise ValueError(f"Unknown color policy: {policy!r}")

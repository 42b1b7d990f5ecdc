"""
Color value type and conversion helpers.

Packed colors use a fixed RGBA8888 layout: red in the most significant byte,
alpha in the least significant one.
"""
from typing import NamedTuple, Tuple


class Color(NamedTuple):
    """Four 8-bit channels."""
    r: int
    g: int
    b: int
    a: int = 255


# Reserved "no known color" value
TRANSPARENT = Color(0, 0, 0, 0)

MAX_PACKED = 0xFFFFFFFF


def pack_rgba(color: Color) -> int:
    """Pack a color into a 32-bit integer (R << 24 | G << 16 | B << 8 | A)."""
    r, g, b, a = color
    for channel in (r, g, b, a):
        if not 0 <= channel <= 255:
            raise ValueError(f"Channel out of range in {tuple(color)}")
    return (r << 24) | (g << 16) | (b << 8) | a


def unpack_rgba(pixel: int) -> Color:
    """Inverse of pack_rgba."""
    if not 0 <= pixel <= MAX_PACKED:
        raise ValueError(f"Packed color out of range: {pixel}")
    return Color((pixel >> 24) & 0xFF, (pixel >> 16) & 0xFF, (pixel >> 8) & 0xFF, pixel & 0xFF)


def rgb_to_hex(color: Color) -> str:
    """Convert a color to a #RRGGBB string (alpha is dropped)."""
    return f"#{color.r:02X}{color.g:02X}{color.b:02X}"


def rgb_to_hsv(color: Color) -> Tuple[int, int, int]:
    """
    Convert a color to HSV.

    Returns:
        (hue in degrees 0-359, saturation 0-255, value 0-255)
    """
    r, g, b = color.r, color.g, color.b
    max_c = max(r, g, b)
    min_c = min(r, g, b)
    delta = max_c - min_c

    if delta == 0:
        return 0, 0, max_c

    if max_c == r:
        hue = 60.0 * (g - b) / delta
    elif max_c == g:
        hue = 120.0 + 60.0 * (b - r) / delta
    else:
        hue = 240.0 + 60.0 * (r - g) / delta

    hue %= 360.0
    saturation = round(255 * delta / max_c)
    return int(hue) % 360, saturation, max_c

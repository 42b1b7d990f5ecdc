"""
blocktint Imaging Utilities
Decodes texture bytes into flat RGBA pixel buffers.
"""
import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError


class DecodeError(ValueError):
    """Raised when bytes are not a decodable image or a pixel buffer is inconsistent."""
    pass


@dataclass(frozen=True)
class DecodedImage:
    """Interleaved RGBA pixels plus dimensions."""
    pixels: bytes
    width: int
    height: int


def decode_image(data: bytes) -> DecodedImage:
    """
    Decode image bytes to an RGBA buffer.

    Args:
        data: Raw image file bytes (PNG or any format Pillow reads)

    Returns:
        DecodedImage with width * height * 4 bytes of pixels

    Raises:
        DecodeError: If the bytes are empty, unrecognised or truncated
    """
    if not data:
        raise DecodeError("Empty image data")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            # Convert to RGBA if necessary
            if image.mode != "RGBA":
                image = image.convert("RGBA")
            width, height = image.size
            pixels = image.tobytes()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Failed to decode image: {str(e)}") from e

    return DecodedImage(pixels=pixels, width=width, height=height)

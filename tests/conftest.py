"""
Test configuration and fixtures for blocktint tests.
"""
import io
import struct
import zipfile
import zlib

import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Import the main app
from main import app
from blocktint.api.v1 import get_block_colors
from blocktint.services.orchestrator import BlockColorCache


RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
GREEN = (0, 200, 0, 255)


def png_bytes(color=RED, size=(4, 4)) -> bytes:
    """Encode a solid-color RGBA PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def png_header_only(width, height) -> bytes:
    """PNG signature plus an IHDR claiming width x height, with a tiny IDAT."""
    def chunk(kind, body):
        return (struct.pack(">I", len(body)) + kind + body
                + struct.pack(">I", zlib.crc32(kind + body) & 0xFFFFFFFF))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr)
            + chunk(b"IDAT", zlib.compress(b"\x00" * 8)) + chunk(b"IEND", b""))


def mark_encrypted(zip_path, member):
    """Set the "encrypted" general purpose flag of one member in a zip file."""
    data = bytearray(zip_path.read_bytes())
    name = member.encode()
    # Local file header: flags at offset 6, name at offset 30
    offset = data.find(b"PK\x03\x04")
    while offset != -1:
        name_len = struct.unpack_from("<H", data, offset + 26)[0]
        if data[offset + 30:offset + 30 + name_len] == name:
            data[offset + 6] |= 0x01
        offset = data.find(b"PK\x03\x04", offset + 4)
    # Central directory header: flags at offset 8, name at offset 46
    offset = data.find(b"PK\x01\x02")
    while offset != -1:
        name_len = struct.unpack_from("<H", data, offset + 28)[0]
        if data[offset + 46:offset + 46 + name_len] == name:
            data[offset + 8] |= 0x01
        offset = data.find(b"PK\x01\x02", offset + 4)
    zip_path.write_bytes(bytes(data))


def rgba_buffer(pixels) -> bytes:
    """Flatten a list of (r, g, b, a) tuples into an RGBA byte buffer."""
    return bytes(channel for pixel in pixels for channel in pixel)


@pytest.fixture
def make_zip(tmp_path):
    """Factory writing a zip archive of {member name: bytes} into tmp_path."""
    def _make_zip(members, name="textures.zip"):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as archive:
            for member, data in members.items():
                archive.writestr(member, data)
        return path
    return _make_zip


@pytest.fixture
def block_colors():
    """Fresh, unloaded block color cache."""
    return BlockColorCache()


@pytest.fixture
def test_client(block_colors):
    """Create test client for the FastAPI app, bound to a fresh cache."""
    app.dependency_overrides[get_block_colors] = lambda: block_colors
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    from blocktint.utils.metrics import reset_metrics
    reset_metrics()

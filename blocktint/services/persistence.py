"""
blocktint Cache Persistence
Reads and writes the block color store as a flat JSON document.

The document is a single object keyed by "<id>-<meta>", one entry per line:

    {
    	"1-0":{"crc":111, "color":4278190335},
    	"5-0":{"crc":222, "color":65535}
    }

``crc`` is the archive CRC-32 the color was computed from and ``color`` is the
color packed as RGBA8888 (see ``pack_rgba``).
"""
import json
import os
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from blocktint.schemas import CacheRecord
from blocktint.services.cache import BlockColorStore, CacheEntry
from blocktint.services.colors.utils import pack_rgba, unpack_rgba
from blocktint.utils.ids import BlockID, BlockIDError
from blocktint.utils.logging import get_logger

logger = get_logger("persistence")


class CacheParseError(ValueError):
    """Raised when a persisted cache document is malformed."""
    pass


def encode(store: BlockColorStore) -> str:
    """
    Serialize a store.

    Entries are written in the store's sorted order with no separator after
    the last one.
    """
    lines = []
    for key, entry in store.items():
        lines.append(
            f"\t{json.dumps(str(key))}:"
            f"{{\"crc\":{entry.checksum}, \"color\":{pack_rgba(entry.color)}}}"
        )
    if not lines:
        return "{\n}"
    return "{\n" + ",\n".join(lines) + "\n}"


def _unique_object(pairs):
    document = {}
    for name, value in pairs:
        if name in document:
            raise CacheParseError(f"Duplicate key {name!r}")
        document[name] = value
    return document


def decode(text: str) -> BlockColorStore:
    """
    Parse a persisted cache document.

    Args:
        text: Document produced by ``encode``

    Returns:
        Store holding every record of the document

    Raises:
        CacheParseError: If the text is not JSON, is not an object, repeats a
            key, or holds a key or record that does not validate. Keys must be
            written exactly as ``encode`` writes them ("5-0", not "5" or
            "5-0.png").
    """
    try:
        document = json.loads(text, object_pairs_hook=_unique_object)
    except json.JSONDecodeError as e:
        raise CacheParseError(f"Invalid JSON: {e}") from e

    if not isinstance(document, dict):
        raise CacheParseError(f"Expected a JSON object, got {type(document).__name__}")

    store = BlockColorStore()
    for name, value in document.items():
        try:
            key = BlockID.parse(name)
        except BlockIDError as e:
            raise CacheParseError(str(e)) from e
        if str(key) != name:
            raise CacheParseError(f"Non-canonical block key {name!r}, expected {str(key)!r}")

        try:
            record = CacheRecord.model_validate(value)
        except ValidationError as e:
            raise CacheParseError(f"Invalid record for {name!r}: {e.errors()}") from e

        store.put(key, CacheEntry(color=unpack_rgba(record.color), checksum=record.crc))
    return store


def load_cache(path: Union[str, Path]) -> BlockColorStore:
    """
    Load a persisted cache, degrading to an empty store.

    A missing, unreadable or malformed file is logged and treated as an empty
    cache so that every archive entry is recomputed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No color cache found, starting empty", extra={"cache_path": str(path)})
        return BlockColorStore()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read color cache: {e}", extra={"cache_path": str(path)})
        return BlockColorStore()

    try:
        store = decode(text)
    except CacheParseError as e:
        logger.warning(f"Could not parse color cache: {e}", extra={"cache_path": str(path)})
        return BlockColorStore()

    logger.debug(f"Loaded {len(store)} cached colors", extra={"cache_path": str(path)})
    return store


def save_cache(path: Union[str, Path], store: BlockColorStore):
    """
    Write the whole store to ``path``.

    The document goes to a sibling temp file first and then replaces the
    target, so readers never see a half-written cache.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(encode(store), encoding="utf-8")
    os.replace(tmp_path, path)
    logger.info(f"Wrote {len(store)} block colors", extra={"cache_path": str(path)})

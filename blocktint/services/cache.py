"""
blocktint Block Color Store
In-memory mapping from block identifiers to (color, checksum) cache entries.
"""
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from blocktint.services.colors.utils import Color, TRANSPARENT
from blocktint.utils.ids import BlockID


@dataclass(frozen=True)
class CacheEntry:
    """A color together with the checksum of the content it was computed from."""
    color: Color
    checksum: int


class BlockColorStore:
    """
    Mapping of BlockID -> CacheEntry.

    Iteration is always sorted by BlockID so that persisted output is stable.
    Not thread safe.
    """

    def __init__(self, entries: Optional[Dict[BlockID, CacheEntry]] = None):
        self._entries: Dict[BlockID, CacheEntry] = dict(entries or {})

    def get(self, key: BlockID) -> Optional[CacheEntry]:
        """Return the entry for ``key`` or None."""
        return self._entries.get(key)

    def put(self, key: BlockID, entry: CacheEntry):
        """Insert or overwrite the entry for ``key``."""
        self._entries[key] = entry

    def color_of(self, block_id: int, meta: int = 0) -> Color:
        """
        Color of a block, for renderers.

        Unknown blocks are not an error: they report TRANSPARENT, since
        callers ask for ids they cannot know exist in advance.
        """
        entry = self._entries.get(BlockID(block_id, meta))
        if entry is None:
            return TRANSPARENT
        return entry.color

    def keys(self) -> List[BlockID]:
        return sorted(self._entries)

    def items(self) -> List[Tuple[BlockID, CacheEntry]]:
        return [(key, self._entries[key]) for key in self.keys()]

    def __iter__(self) -> Iterator[BlockID]:
        return iter(self.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockColorStore):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"BlockColorStore({len(self._entries)} entries)"

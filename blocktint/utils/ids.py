"""
blocktint Block Identifiers
Parse and format the "<id>-<meta>" names block textures are stored under.
"""
import re
from dataclasses import dataclass

_BLOCK_ID_RE = re.compile(r"([0-9]+)(?:-([0-9]+))?")


class BlockIDError(ValueError):
    """Raised when a name is not a valid block identifier."""
    pass


@dataclass(frozen=True, order=True)
class BlockID:
    """
    Composite block identifier.

    Ordered by ``id`` first and ``meta`` second, which is the order the
    persisted cache is written in.
    """
    id: int
    meta: int = 0

    @classmethod
    def parse(cls, text: str) -> "BlockID":
        """
        Parse a block identifier from its textual form.

        Accepts "405-3", "405" (meta defaults to 0) and either of those
        followed by an extension, e.g. "405-3.png".

        Args:
            text: Textual identifier, optionally with an extension

        Returns:
            Parsed BlockID

        Raises:
            BlockIDError: If the id or meta segment is missing or not numeric,
                or anything follows them (including a newline)
        """
        stem = strip_extension(text)
        match = _BLOCK_ID_RE.fullmatch(stem)
        if match is None:
            raise BlockIDError(f"Not a block identifier: {text!r}")

        meta = match.group(2)
        return cls(int(match.group(1)), int(meta) if meta is not None else 0)

    def __str__(self) -> str:
        return f"{self.id}-{self.meta}"


def strip_extension(name: str) -> str:
    """Drop everything from the first '.' on ("1-0.png" -> "1-0")."""
    return name.split(".", 1)[0]

"""
blocktint Reconciler
Brings a block color store up to date with the contents of a texture archive.

For every archive entry the prior store is consulted: an entry whose CRC is
unchanged is copied over untouched, anything else is decoded and its color
recomputed. The resulting store is persisted only when something changed.
"""
import posixpath
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from blocktint.config import config
from blocktint.services.archive import ArchiveEntry, EntryReadError, open_archive
from blocktint.services.cache import BlockColorStore, CacheEntry
from blocktint.services.colors.extraction import Extractor, extract_color, get_extractor
from blocktint.services.colors.utils import Color
from blocktint.services.imaging import DecodeError, DecodedImage, decode_image
from blocktint.services.persistence import load_cache, save_cache
from blocktint.utils.ids import BlockID, BlockIDError
from blocktint.utils.logging import get_logger
from blocktint.utils.metrics import get_metrics

logger = get_logger("reconciler")

Decoder = Callable[[bytes], DecodedImage]


@dataclass(frozen=True)
class EntryFailure:
    """An archive entry whose color could not be determined."""
    name: str
    key: Optional[BlockID]
    reason: str


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""
    store: BlockColorStore
    was_modified: bool = False
    hits: int = 0
    misses: int = 0
    skipped: List[str] = field(default_factory=list)
    shadowed: List[str] = field(default_factory=list)
    failures: List[EntryFailure] = field(default_factory=list)


def block_id_for_entry(name: str) -> BlockID:
    """
    Derive the block identifier from an archive member name.

    "blocks/405-3.png" -> BlockID(405, 3)

    Raises:
        BlockIDError: If the name is not "<id>[-<meta>][.ext]"
    """
    return BlockID.parse(posixpath.basename(name.replace("\\", "/")))


def reconcile(entries: Iterable[ArchiveEntry],
              prior: BlockColorStore,
              decoder: Decoder = decode_image,
              extractor: Extractor = extract_color) -> ReconcileResult:
    """
    Run one reconciliation pass.

    Args:
        entries: Archive entries (name, checksum, reader)
        prior: Store loaded from the persisted cache, possibly empty
        decoder: Image decoder turning entry bytes into RGBA pixels
        extractor: Color policy applied to decoded pixels

    Returns:
        ReconcileResult; ``store`` holds exactly the archive's tracked entries
        whose color is known, each with the checksum the archive reported now
    """
    metrics = get_metrics()
    start_time = time.time()
    result = ReconcileResult(store=BlockColorStore())

    tracked = []
    for entry in entries:
        try:
            tracked.append((block_id_for_entry(entry.name), entry))
        except BlockIDError:
            logger.debug(f"Skipping untracked archive entry {entry.name}")
            result.skipped.append(entry.name)
            metrics.increment_skipped()

    # Later entries win; earlier ones for the same block are never decoded.
    winners = {key: entry for key, entry in tracked}
    for key, entry in tracked:
        if winners[key] is not entry:
            logger.warning(
                f"Archive entry {entry.name} is shadowed by {winners[key].name}",
                extra={"entry": entry.name, "block_id": str(key)}
            )
            result.shadowed.append(entry.name)

    for key, entry in winners.items():
        cached = prior.get(key)
        if cached is not None and cached.checksum == entry.checksum:
            result.store.put(key, cached)
            result.hits += 1
            metrics.increment_cache_hit()
            continue

        result.misses += 1
        metrics.increment_cache_miss()
        try:
            color = _compute_color(entry, decoder, extractor)
        except (DecodeError, EntryReadError) as e:
            # Left out of the store: color_of reports it as unknown and the
            # next pass retries it.
            logger.error(
                f"Could not determine color of {entry.name}: {e}",
                extra={"entry": entry.name, "block_id": str(key), "crc": entry.checksum}
            )
            result.failures.append(EntryFailure(name=entry.name, key=key, reason=str(e)))
            metrics.increment_decode_failure()
            if cached is not None:
                result.was_modified = True
            continue

        result.store.put(key, CacheEntry(color=color, checksum=entry.checksum))
        result.was_modified = True

    dropped = [key for key in prior if key not in result.store and not _failed(result, key)]
    if dropped:
        logger.info(f"Dropping {len(dropped)} cached blocks no longer in the archive")
        result.was_modified = True

    duration_ms = (time.time() - start_time) * 1000
    metrics.record_timing("reconcile", duration_ms)
    logger.info(
        "Reconciliation pass complete",
        extra={
            "entries": len(result.store),
            "hits": result.hits,
            "misses": result.misses,
            "failures": len(result.failures),
            "skipped": len(result.skipped),
            "shadowed": len(result.shadowed),
            "was_modified": result.was_modified,
            "duration_ms": round(duration_ms, 2)
        }
    )
    return result


def _compute_color(entry: ArchiveEntry, decoder: Decoder, extractor: Extractor) -> Color:
    image = decoder(entry.read())
    return extractor(image.pixels, image.width, image.height)


def _failed(result: ReconcileResult, key: BlockID) -> bool:
    return any(failure.key == key for failure in result.failures)


class BlockColorCache:
    """
    Colors of every block in a texture archive, backed by a persisted cache.

    Call ``load`` once per archive; afterwards ``color_of`` answers renderer
    queries. Not thread safe.
    """

    def __init__(self, policy: Optional[str] = None, tolerance: Optional[int] = None,
                 decoder: Decoder = decode_image):
        self.policy = policy or config.COLOR_POLICY
        self.tolerance = tolerance if tolerance is not None else config.COLOR_TOLERANCE
        if not config.validate_tolerance(self.tolerance):
            raise ValueError(f"Color tolerance out of range: {self.tolerance}")
        self.extractor = get_extractor(self.policy, self.tolerance)
        self.decoder = decoder

        self.store = BlockColorStore()
        self.archive_path: Optional[str] = None
        self.cache_path: Optional[str] = None
        self.last_result: Optional[ReconcileResult] = None
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        """True once a load has completed."""
        return self._loaded

    def load(self, archive_path: Union[str, Path],
             cache_path: Optional[Union[str, Path]] = None) -> ReconcileResult:
        """
        Load block colors for an archive.

        Args:
            archive_path: Texture archive (.zip or directory)
            cache_path: Persisted cache file; defaults to a file next to the archive

        Returns:
            The ReconcileResult of the pass

        Raises:
            ArchiveOpenError: If the archive cannot be opened; nothing is
                loaded and previous state is kept
        """
        archive_path = str(archive_path)
        cache_path = str(cache_path) if cache_path else config.default_cache_path(archive_path)

        with logger.contextualize(archive_path=archive_path):
            with open_archive(archive_path) as archive:
                logger.info(
                    f"Loading block colors from {archive_path}",
                    extra={"entries": len(archive), "policy": self.policy}
                )
                prior = load_cache(cache_path)
                result = reconcile(archive.entries, prior, decoder=self.decoder, extractor=self.extractor)

            if result.was_modified:
                try:
                    save_cache(cache_path, result.store)
                except OSError as e:
                    # Colors are still usable; the next load recomputes them.
                    logger.error(f"Could not write color cache: {e}", extra={"cache_path": cache_path})

        self.store = result.store
        self.archive_path = archive_path
        self.cache_path = cache_path
        self.last_result = result
        self._loaded = True
        return result

    def color_of(self, block_id: int, meta: int = 0) -> Color:
        """Color of a block, TRANSPARENT when unknown."""
        return self.store.color_of(block_id, meta)

"""
Tests for reconciliation of a texture archive against the color cache.
"""
import zlib

import pytest

from blocktint.services.archive import ArchiveEntry, ArchiveOpenError
from blocktint.services.cache import BlockColorStore, CacheEntry
from blocktint.services.colors.utils import Color, TRANSPARENT
from blocktint.services.imaging import decode_image
from blocktint.services.orchestrator import BlockColorCache, block_id_for_entry, reconcile
from blocktint.services.persistence import encode, load_cache
from blocktint.utils.ids import BlockID
from blocktint.utils.metrics import get_metrics

from conftest import png_bytes, png_header_only, mark_encrypted, RED, BLUE, GREEN


class CountingDecoder:
    """Wraps decode_image and counts calls."""

    def __init__(self):
        self.calls = 0

    def __call__(self, data):
        self.calls += 1
        return decode_image(data)


def entry(name, checksum, data):
    return ArchiveEntry(name=name, checksum=checksum, read=lambda: data)


@pytest.fixture
def two_entries():
    return [entry("1-0.img", 111, png_bytes(RED)), entry("5.img", 222, png_bytes(BLUE))]


class TestBlockIdForEntry:

    def test_nested_member_name(self):
        assert block_id_for_entry("textures/blocks/7-2.png") == BlockID(7, 2)

    def test_windows_separators(self):
        assert block_id_for_entry("textures\\blocks\\7.png") == BlockID(7, 0)


class TestReconcile:

    def test_two_entries_against_empty_cache(self, two_entries):
        result = reconcile(two_entries, BlockColorStore())

        assert result.was_modified is True
        assert result.misses == 2
        assert result.hits == 0
        assert list(result.store) == [BlockID(1, 0), BlockID(5, 0)]
        assert result.store.get(BlockID(1, 0)) == CacheEntry(Color(255, 0, 0, 255), 111)
        assert result.store.get(BlockID(5, 0)) == CacheEntry(Color(0, 0, 255, 255), 222)
        assert encode(result.store) == (
            '{\n'
            '\t"1-0":{"crc":111, "color":4278190335},\n'
            '\t"5-0":{"crc":222, "color":65535}\n'
            '}'
        )

    def test_second_pass_is_all_hits(self, two_entries):
        first = reconcile(two_entries, BlockColorStore())
        decoder = CountingDecoder()

        second = reconcile(two_entries, first.store, decoder=decoder)

        assert decoder.calls == 0
        assert second.was_modified is False
        assert second.hits == 2
        assert second.store == first.store

    def test_changed_checksum_recomputes_only_that_entry(self, two_entries):
        prior = reconcile(two_entries, BlockColorStore()).store
        changed = [two_entries[0], entry("5.img", 333, png_bytes(GREEN))]
        decoder = CountingDecoder()

        result = reconcile(changed, prior, decoder=decoder)

        assert decoder.calls == 1
        assert result.was_modified is True
        assert result.store.get(BlockID(1, 0)) is prior.get(BlockID(1, 0))
        assert result.store.get(BlockID(5, 0)) == CacheEntry(Color(0, 200, 0, 255), 333)

    def test_stale_prior_entry_never_survives(self):
        prior = BlockColorStore({BlockID(1, 0): CacheEntry(Color(1, 1, 1, 255), 999)})

        result = reconcile([entry("1-0.png", 111, png_bytes(RED))], prior)

        assert result.store.get(BlockID(1, 0)).checksum == 111

    def test_hit_does_not_read_entry(self):
        def unreadable():
            raise AssertionError("hit must not read the entry")

        prior = BlockColorStore({BlockID(3, 0): CacheEntry(Color(3, 3, 3, 255), 42)})
        result = reconcile([ArchiveEntry("3.png", 42, unreadable)], prior)

        assert result.hits == 1
        assert result.store.color_of(3) == Color(3, 3, 3, 255)

    def test_untracked_names_are_skipped(self):
        entries = [entry("pack.mcmeta", 1, b"{}"), entry("readme.txt", 2, b"hi"),
                   entry("1-0.png", 3, png_bytes(RED))]

        result = reconcile(entries, BlockColorStore())

        assert result.skipped == ["pack.mcmeta", "readme.txt"]
        assert list(result.store) == [BlockID(1, 0)]
        assert get_metrics().get_counters()["skipped_entries_total"] == 2

    def test_decode_failure_is_reported_and_pass_continues(self):
        entries = [entry("1-0.png", 111, png_bytes(RED)), entry("2-0.png", 5, b"corrupt"),
                   entry("5.png", 222, png_bytes(BLUE))]

        result = reconcile(entries, BlockColorStore())

        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.name == "2-0.png"
        assert failure.key == BlockID(2, 0)
        assert failure.reason
        assert BlockID(2, 0) not in result.store
        assert result.store.color_of(2, 0) == TRANSPARENT
        assert list(result.store) == [BlockID(1, 0), BlockID(5, 0)]
        assert get_metrics().get_counters()["decode_failures_total"] == 1

    def test_decode_failure_is_not_a_hit_on_next_pass(self):
        entries = [entry("2-0.png", 5, b"corrupt")]
        first = reconcile(entries, BlockColorStore())
        decoder = CountingDecoder()

        second = reconcile(entries, first.store, decoder=decoder)

        assert decoder.calls == 1
        assert second.hits == 0
        assert len(second.failures) == 1

    def test_failure_on_previously_cached_key_marks_modified(self):
        prior = BlockColorStore({BlockID(2, 0): CacheEntry(Color(9, 9, 9, 255), 4)})

        result = reconcile([entry("2-0.png", 5, b"corrupt")], prior)

        assert result.was_modified is True
        assert BlockID(2, 0) not in result.store

    def test_blocks_removed_from_archive_are_dropped(self, two_entries):
        prior = reconcile(two_entries, BlockColorStore()).store
        prior.put(BlockID(9, 0), CacheEntry(Color(9, 9, 9, 255), 9))

        result = reconcile(two_entries, prior)

        assert result.hits == 2
        assert result.was_modified is True
        assert BlockID(9, 0) not in result.store

    def test_custom_extractor(self, two_entries):
        calls = []

        def extractor(pixels, width, height):
            calls.append((width, height))
            return Color(1, 2, 3, 255)

        result = reconcile(two_entries, BlockColorStore(), extractor=extractor)

        assert calls == [(4, 4), (4, 4)]
        assert result.store.color_of(5) == Color(1, 2, 3, 255)

    def test_metrics_recorded(self, two_entries):
        first = reconcile(two_entries, BlockColorStore())
        reconcile(two_entries, first.store)

        counters = get_metrics().get_counters()
        assert counters["cache_misses_total"] == 2
        assert counters["cache_hits_total"] == 2
        assert get_metrics().get_timing_stats()["reconcile_duration_ms"]["count"] == 2

    def test_oversized_image_is_a_per_entry_failure(self):
        entries = [entry("1-0.png", 111, png_bytes(RED)), entry("2-0.png", 7, png_header_only(20000, 20000)),
                   entry("5.png", 222, png_bytes(BLUE))]

        result = reconcile(entries, BlockColorStore())

        assert [failure.name for failure in result.failures] == ["2-0.png"]
        assert list(result.store) == [BlockID(1, 0), BlockID(5, 0)]


class TestDuplicateKeys:
    """Several archive members naming the same block."""

    @pytest.fixture
    def duplicated(self):
        return [entry("blocks/1-0.png", 10, png_bytes(RED)),
                entry("items/1-0.png", 20, png_bytes(BLUE)),
                entry("5.png", 222, png_bytes(GREEN))]

    def test_last_entry_wins(self, duplicated):
        decoder = CountingDecoder()

        result = reconcile(duplicated, BlockColorStore(), decoder=decoder)

        assert decoder.calls == 2
        assert result.misses == 2
        assert result.shadowed == ["blocks/1-0.png"]
        assert result.store.get(BlockID(1, 0)) == CacheEntry(Color(0, 0, 255, 255), 20)

    def test_unchanged_archive_reconciles_without_decoding(self, duplicated):
        first = reconcile(duplicated, BlockColorStore())
        decoder = CountingDecoder()

        second = reconcile(duplicated, first.store, decoder=decoder)

        assert decoder.calls == 0
        assert second.was_modified is False
        assert second.hits == 2
        assert second.misses == 0
        assert second.shadowed == ["blocks/1-0.png"]
        assert second.store == first.store

    def test_reload_of_zip_with_duplicate_names(self, make_zip, tmp_path):
        archive = make_zip({"blocks/1-0.png": png_bytes(RED), "items/1-0.png": png_bytes(BLUE)})
        cache_path = tmp_path / "colors.json"
        BlockColorCache().load(archive, cache_path)

        decoder = CountingDecoder()
        result = BlockColorCache(decoder=decoder).load(archive, cache_path)

        assert decoder.calls == 0
        assert result.was_modified is False
        assert result.shadowed == ["blocks/1-0.png"]


class TestBlockColorCache:

    def test_load_end_to_end(self, make_zip, tmp_path):
        red, blue = png_bytes(RED), png_bytes(BLUE)
        archive = make_zip({"1-0.img": red, "5.img": blue})
        cache_path = tmp_path / "colors.json"
        cache = BlockColorCache()
        assert cache.is_loaded is False

        result = cache.load(archive, cache_path)

        assert cache.is_loaded is True
        assert result.was_modified is True
        assert cache.color_of(1, 0) == Color(255, 0, 0, 255)
        assert cache.color_of(5) == Color(0, 0, 255, 255)
        assert cache.color_of(6) == TRANSPARENT

        persisted = load_cache(cache_path)
        assert list(persisted) == [BlockID(1, 0), BlockID(5, 0)]
        assert persisted.get(BlockID(1, 0)).checksum == zlib.crc32(red)
        assert persisted.get(BlockID(5, 0)).checksum == zlib.crc32(blue)

    def test_reload_unchanged_archive_skips_decoding_and_writing(self, make_zip, tmp_path):
        archive = make_zip({"1-0.png": png_bytes(RED), "5.png": png_bytes(BLUE)})
        cache_path = tmp_path / "colors.json"
        BlockColorCache().load(archive, cache_path)
        cache_path.write_text(cache_path.read_text() + "\n")
        before = cache_path.read_text()

        decoder = CountingDecoder()
        cache = BlockColorCache(decoder=decoder)
        result = cache.load(archive, cache_path)

        assert decoder.calls == 0
        assert result.was_modified is False
        assert cache_path.read_text() == before
        assert cache.color_of(5) == Color(0, 0, 255, 255)

    def test_corrupt_cache_is_recomputed(self, make_zip, tmp_path):
        archive = make_zip({"1-0.png": png_bytes(RED)})
        cache_path = tmp_path / "colors.json"
        cache_path.write_text('{"1-0": {"crc": ')

        result = BlockColorCache().load(archive, cache_path)

        assert result.misses == 1
        assert result.was_modified is True
        assert load_cache(cache_path).color_of(1) == Color(255, 0, 0, 255)

    def test_default_cache_path_next_to_archive(self, make_zip, tmp_path):
        archive = make_zip({"1-0.png": png_bytes(RED)}, name="pack.zip")
        cache = BlockColorCache()

        cache.load(archive)

        assert cache.cache_path == str(tmp_path / "pack.colors.json")
        assert (tmp_path / "pack.colors.json").exists()

    def test_missing_archive_is_fatal(self, tmp_path):
        cache = BlockColorCache()
        missing = tmp_path / "missing.zip"

        with pytest.raises(ArchiveOpenError) as exc_info:
            cache.load(missing, tmp_path / "colors.json")

        assert str(missing) in str(exc_info.value)
        assert cache.is_loaded is False
        assert not (tmp_path / "colors.json").exists()

    def test_bad_entry_does_not_fail_load(self, make_zip, tmp_path):
        archive = make_zip({"1-0.png": png_bytes(RED), "3-0.png": b"not a png"})
        cache_path = tmp_path / "colors.json"
        cache = BlockColorCache()

        result = cache.load(archive, cache_path)

        assert cache.is_loaded is True
        assert [failure.name for failure in result.failures] == ["3-0.png"]
        assert cache.color_of(3) == TRANSPARENT
        assert BlockID(3, 0) not in load_cache(cache_path)

    def test_mean_policy(self, make_zip, tmp_path):
        archive = make_zip({"1-0.png": png_bytes(RED)})
        cache = BlockColorCache(policy="mean")

        cache.load(archive, tmp_path / "colors.json")

        assert cache.color_of(1) == Color(255, 0, 0, 255)

    def test_directory_archive(self, tmp_path):
        textures = tmp_path / "textures"
        textures.mkdir()
        (textures / "4-1.png").write_bytes(png_bytes(GREEN))

        cache = BlockColorCache()
        cache.load(textures, tmp_path / "colors.json")

        assert cache.color_of(4, 1) == Color(0, 200, 0, 255)

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            BlockColorCache(tolerance=0)
        with pytest.raises(ValueError):
            BlockColorCache(policy="median")

    def test_encrypted_member_does_not_fail_load(self, make_zip, tmp_path):
        archive = make_zip({"1-0.png": png_bytes(RED), "2-0.png": png_bytes(BLUE),
                            "5.png": png_bytes(GREEN)})
        mark_encrypted(archive, "2-0.png")
        cache = BlockColorCache()

        result = cache.load(archive, tmp_path / "colors.json")

        assert cache.is_loaded is True
        assert [failure.name for failure in result.failures] == ["2-0.png"]
        assert cache.color_of(2) == TRANSPARENT
        assert cache.color_of(1) == Color(255, 0, 0, 255)
        assert cache.color_of(5) == Color(0, 200, 0, 255)

import asyncio
import sqlite3

import pytest

from conftest import CountingSource
from verse_engine.core.phonemes import NULL_RHYME_KEY
from verse_engine.core.pronunciation_store import PronunciationStore, PronunciationStoreHandle
from verse_engine.core.sources import FileSource
from verse_engine.errors import StoreBuildError


def test_lookup_returns_records_with_rhyme_keys(store):
    record = asyncio.run(store.lookup("Roses"))

    assert record is not None
    assert record.word == "ROSES"
    assert record.syllable_count == 5
    assert record.rhyme_keys == ("Z", "IH Z", "Z IH Z")

    short = asyncio.run(store.lookup("a"))
    assert short.rhyme_keys == ("AH", NULL_RHYME_KEY, NULL_RHYME_KEY)


def test_lookup_miss_is_none(store):
    assert asyncio.run(store.lookup("zyzzyva")) is None
    assert asyncio.run(store.lookup("!!")) is None


def test_first_occurrence_wins_for_duplicate_words(store):
    record = asyncio.run(store.lookup("light"))

    # The later LIGHT(1) variant ends in D and must not replace the first entry.
    assert record.symbols == ("L", "AY", "T")


def test_ingest_reports_counts(tmp_path):
    source = CountingSource("WORD  W ER1 D\nWORD  W AO1 R D\n; note\nBAD  B @ D\n")
    store = PronunciationStore(tmp_path / "ingest.db")
    try:
        report = asyncio.run(store.ingest(source))
    finally:
        store.close()

    assert report.lines_read == 4
    assert report.records_stored == 1
    assert report.duplicates == 1
    assert report.skipped == 1


def test_find_by_rhyme_key_orders_by_ingestion_and_excludes(store):
    words = asyncio.run(store.find_by_rhyme_key(2, "AY T", 10, exclude="LIGHT"))

    assert words == ["NIGHT", "SIGHT", "BRIGHT", "FLIGHT"]


def test_find_by_rhyme_key_limits_and_null_key(store):
    assert asyncio.run(store.find_by_rhyme_key(1, "T", 2)) == ["LIGHT", "NIGHT"]
    assert asyncio.run(store.find_by_rhyme_key(1, "T", 0)) == []
    assert asyncio.run(store.find_by_rhyme_key(3, NULL_RHYME_KEY, 10)) == []
    with pytest.raises(ValueError):
        asyncio.run(store.find_by_rhyme_key(5, "T", 10))


def test_file_source_builds_store(tmp_path, dictionary_file):
    store = asyncio.run(PronunciationStore.open(tmp_path / "file.db", FileSource(dictionary_file)))
    try:
        assert asyncio.run(store.lookup("sugar")).syllable_count == 4
    finally:
        store.close()


def test_complete_store_is_reused(db_path):
    first = CountingSource()
    store = asyncio.run(PronunciationStore.open(db_path, first))
    store.close()

    second = CountingSource()
    reopened = asyncio.run(PronunciationStore.open(db_path, second))
    reopened.close()

    assert first.reads == 1
    assert second.reads == 0
    assert reopened.ingested is False


def test_rebuild_flag_forces_ingestion(db_path):
    asyncio.run(PronunciationStore.open(db_path, CountingSource())).close()

    again = CountingSource("MOON  M UW1 N\n")
    store = asyncio.run(PronunciationStore.open(db_path, again, rebuild=True))
    try:
        assert again.reads == 1
        assert asyncio.run(store.lookup("light")) is None
        assert asyncio.run(store.lookup("moon")) is not None
    finally:
        store.close()


def test_store_without_completion_marker_is_rebuilt(db_path):
    db_path.parent.mkdir(parents=True)
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE words (word TEXT PRIMARY KEY)")
    conn.execute("INSERT INTO words VALUES ('HALF')")
    conn.commit()
    conn.close()

    source = CountingSource()
    store = asyncio.run(PronunciationStore.open(db_path, source))
    try:
        assert source.reads == 1
        assert store.is_complete()
        assert asyncio.run(store.lookup("night")) is not None
    finally:
        store.close()


def test_concurrent_callers_share_one_build(db_path):
    source = CountingSource(delay=0.01)
    handle = PronunciationStoreHandle(source, db_path)

    async def scenario():
        try:
            stores = await asyncio.gather(*(handle.get() for _ in range(5)))
        finally:
            await handle.close()
        return stores

    stores = asyncio.run(scenario())

    assert source.reads == 1
    assert handle.ingestion_count == 1
    assert all(store is stores[0] for store in stores)


def test_failed_build_propagates_then_retries(db_path):
    source = CountingSource(fail=True)
    handle = PronunciationStoreHandle(source, db_path)

    async def scenario():
        results = await asyncio.gather(
            handle.get(), handle.get(), return_exceptions=True
        )
        source.fail = False
        try:
            store = await handle.get()
            record = await store.lookup("blue")
        finally:
            await handle.close()
        return results, record

    results, record = asyncio.run(scenario())

    assert all(isinstance(result, StoreBuildError) for result in results)
    assert source.reads == 2
    assert record is not None
    assert handle.ingestion_count == 1


def test_cancelled_caller_does_not_cancel_build(db_path):
    source = CountingSource(delay=0.05)
    handle = PronunciationStoreHandle(source, db_path)

    async def scenario():
        try:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(handle.get(), timeout=0.001)
            return await handle.get()
        finally:
            await handle.close()

    store = asyncio.run(scenario())

    assert store is not None
    assert source.reads == 1


def test_plain_spelling_replaces_earlier_contraction(tmp_path):
    source = CountingSource(
        "HE'LL  HH IY1 L\n"
        "HELL  HH EH1 L\n"
        "WE'LL  W IY1 L\n"
        "WELL  W EH1 L\n"
        "WELL(1)  W AH0 L\n"
        "O'CLOCK  AH0 K L AA1 K\n"
        "ILL  IH1 L\n"
        "I'LL  AY1 L\n"
    )
    store = PronunciationStore(tmp_path / "contractions.db")
    try:
        report = asyncio.run(store.ingest(source))
        hell = asyncio.run(store.lookup("hell"))
        well = asyncio.run(store.lookup("well"))
        oclock = asyncio.run(store.lookup("o'clock"))
        ill = asyncio.run(store.lookup("ill"))
    finally:
        store.close()

    assert hell.phonemes_with_stress == "HH EH1 L"
    assert well.phonemes_with_stress == "W EH1 L"
    assert oclock.phonemes_with_stress == "AH0 K L AA1 K"
    assert ill.phonemes_with_stress == "IH1 L"
    assert report.records_stored == 4
    assert report.duplicates == 4

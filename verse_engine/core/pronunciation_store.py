"""SQLite backed pronunciation store and its one-time build handle."""

from __future__ import annotations

import asyncio
import queue
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Generator, List, Optional, Set

from ..errors import StoreBuildError
from ..utils.observability import (
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from .phonemes import (
    NULL_RHYME_KEY,
    RHYME_KEY_WINDOWS,
    Phoneme,
    PronunciationRecord,
    is_plain_spelling,
    normalize_word,
    parse_source_line,
)
from .sources import PronunciationSource

DEFAULT_DB_PATH = Path("rhyme_dict") / "rhyme_dict.db"

_SCHEMA = (
    """
    CREATE TABLE words (
        word TEXT PRIMARY KEY,
        phonemes TEXT,
        phonemes_with_stress TEXT,
        syllable_count INTEGER,
        last_syllable_1 TEXT,
        last_syllable_2 TEXT,
        last_syllable_3 TEXT
    )
    """,
    "CREATE INDEX idx_last_syllable_1 ON words (last_syllable_1)",
    "CREATE INDEX idx_last_syllable_2 ON words (last_syllable_2)",
    "CREATE INDEX idx_last_syllable_3 ON words (last_syllable_3)",
    "CREATE TABLE store_meta (key TEXT PRIMARY KEY, value TEXT)",
)

_LOOKUPS = create_counter(
    "verse_store_lookups_total",
    "Pronunciation lookups by outcome.",
    label_names=("result",),
)
_BUILD_SECONDS = create_histogram(
    "verse_store_build_seconds",
    "Time spent ingesting a pronunciation source.",
)


@dataclass
class IngestionReport:
    source: str
    lines_read: int = 0
    records_stored: int = 0
    duplicates: int = 0
    skipped: int = 0


class PronunciationStore:
    """Read-mostly mapping from normalized word to pronunciation record.

    Queries run in worker threads over a small connection pool so the event
    loop never blocks on SQLite.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        pool_size: int = 4,
        pool_timeout: float = 5.0,
    ) -> None:
        self.db_path = Path(db_path)
        self.ingested = False
        self._pool_size = max(1, int(pool_size))
        self._pool_timeout = max(0.0, float(pool_timeout))
        self._pool: queue.Queue = queue.Queue(maxsize=self._pool_size)
        self._pool_semaphore = threading.BoundedSemaphore(self._pool_size)
        self._logger = get_logger(__name__).bind(
            component="pronunciation_store",
            db_path=str(self.db_path),
        )

    # Connection pool -------------------------------------------------------
    def _acquire_connection(self) -> sqlite3.Connection:
        if not self._pool_semaphore.acquire(timeout=self._pool_timeout or None):
            self._logger.error(
                "Store connection pool exhausted",
                context={"pool_size": self._pool_size, "timeout": self._pool_timeout},
            )
            raise TimeoutError("Store connection pool exhausted")
        try:
            return self._pool.get_nowait()
        except queue.Empty:
            return sqlite3.connect(str(self.db_path), check_same_thread=False)

    def _release_connection(self, connection: sqlite3.Connection) -> None:
        try:
            self._pool.put_nowait(connection)
        except queue.Full:
            connection.close()
        finally:
            self._pool_semaphore.release()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        connection = self._acquire_connection()
        try:
            yield connection
            if connection.in_transaction:
                connection.commit()
        except Exception as exc:
            if connection.in_transaction:
                connection.rollback()
            self._logger.error("Store operation failed", context={"error": str(exc)})
            raise
        finally:
            self._release_connection(connection)

    def close(self) -> None:
        while True:
            try:
                connection = self._pool.get_nowait()
            except queue.Empty:
                break
            connection.close()

    # Build -----------------------------------------------------------------
    @classmethod
    async def open(
        cls,
        db_path: Path | str,
        source: PronunciationSource,
        *,
        rebuild: bool = False,
    ) -> "PronunciationStore":
        """Open the store at ``db_path``, ingesting ``source`` when needed.

        A store carrying the completion marker is reused as-is unless
        ``rebuild`` is set. A store without the marker is treated as a
        leftover of a failed build and ingested again.
        """

        path = Path(db_path)
        if rebuild and path.exists():
            path.unlink()
        path.parent.mkdir(parents=True, exist_ok=True)

        store = cls(path)
        try:
            if await asyncio.to_thread(store.is_complete):
                store._logger.info("Reusing existing pronunciation store")
                return store
            await store.ingest(source)
        except BaseException:
            store.close()
            raise
        return store

    def is_complete(self) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'store_meta'"
            ).fetchone()
            if row is None:
                return False
            marker = conn.execute(
                "SELECT value FROM store_meta WHERE key = 'complete'"
            ).fetchone()
            return marker is not None

    async def ingest(self, source: PronunciationSource) -> IngestionReport:
        """Replace the store contents with every record in ``source``."""

        report = IngestionReport(source=source.name)
        records: Dict[str, PronunciationRecord] = {}
        plain: Set[str] = set()
        self._logger.info("Populating pronunciation store", context={"source": source.name})
        started = time.perf_counter()

        async for line in source.lines():
            report.lines_read += 1
            try:
                record = parse_source_line(line)
            except ValueError:
                report.skipped += 1
                continue
            if record is None:
                continue
            # First occurrence wins, except that a letters-only spelling replaces
            # a contraction folded onto the same key (HE'LL before HELL).
            spelled_plain = is_plain_spelling(line.split()[0])
            if record.word in records:
                report.duplicates += 1
                if record.word in plain or not spelled_plain:
                    continue
            records[record.word] = record
            if spelled_plain:
                plain.add(record.word)

        await asyncio.to_thread(self._write_records, list(records.values()), report)
        _BUILD_SECONDS.observe(time.perf_counter() - started)
        self.ingested = True
        self._logger.info(
            "Populated pronunciation store",
            context={
                "source": report.source,
                "lines_read": report.lines_read,
                "records_stored": report.records_stored,
                "duplicates": report.duplicates,
                "skipped": report.skipped,
            },
        )
        return report

    def _write_records(
        self, records: List[PronunciationRecord], report: IngestionReport
    ) -> None:
        with self._connect() as conn:
            conn.execute("BEGIN")
            conn.execute("DROP TABLE IF EXISTS store_meta")
            conn.execute("DROP TABLE IF EXISTS words")
            for statement in _SCHEMA:
                conn.execute(statement)
            before = conn.total_changes
            conn.executemany(
                """
                INSERT INTO words (
                    word,
                    phonemes,
                    phonemes_with_stress,
                    syllable_count,
                    last_syllable_1,
                    last_syllable_2,
                    last_syllable_3
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    (
                        record.word,
                        " ".join(record.symbols),
                        record.phonemes_with_stress,
                        record.syllable_count,
                        *record.rhyme_keys,
                    )
                    for record in records
                ),
            )
            report.records_stored = conn.total_changes - before
            conn.execute(
                "INSERT INTO store_meta (key, value) VALUES ('complete', ?)",
                (str(report.records_stored),),
            )

    # Queries ---------------------------------------------------------------
    def _lookup_sync(self, word: str) -> Optional[PronunciationRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT word, phonemes_with_stress FROM words WHERE word = ?",
                (word,),
            ).fetchone()
        if row is None:
            return None
        stored_word, phonemes = row
        return PronunciationRecord(
            word=stored_word,
            phonemes=tuple(Phoneme.parse(token) for token in phonemes.split()),
        )

    async def lookup(self, word: str) -> Optional[PronunciationRecord]:
        """Return the record for ``word`` or ``None`` if it is unknown."""

        normalized = normalize_word(word)
        if not normalized:
            _LOOKUPS.labels(result="miss").inc()
            return None
        record = await asyncio.to_thread(self._lookup_sync, normalized)
        _LOOKUPS.labels(result="hit" if record is not None else "miss").inc()
        return record

    def _find_sync(
        self, tier: int, key: str, limit: int, exclude: Optional[str]
    ) -> List[str]:
        column = f"last_syllable_{tier}"
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT word FROM words WHERE {column} = ? AND word != ? "
                "ORDER BY rowid LIMIT ?",
                (key, exclude or "", limit),
            ).fetchall()
        return [row[0] for row in rows]

    async def find_by_rhyme_key(
        self,
        tier: int,
        key: str,
        limit: int,
        *,
        exclude: Optional[str] = None,
    ) -> List[str]:
        """Words whose ``tier`` syllable rhyme key equals ``key``."""

        if tier not in RHYME_KEY_WINDOWS:
            raise ValueError(f"Unsupported rhyme tier {tier}")
        if limit <= 0 or not key or key == NULL_RHYME_KEY:
            return []
        return await asyncio.to_thread(self._find_sync, tier, key, limit, exclude)


class PronunciationStoreHandle:
    """Process-wide handle guarding the one-time store build.

    The first :meth:`get` schedules the build; every concurrent caller
    awaits the same task and sees the same store or the same
    :class:`StoreBuildError`. A failed build frees the slot for a retry.
    """

    def __init__(
        self,
        source: PronunciationSource,
        db_path: Path | str = DEFAULT_DB_PATH,
        *,
        rebuild: bool = False,
    ) -> None:
        self.source = source
        self.db_path = Path(db_path)
        self.rebuild = rebuild
        self.ingestion_count = 0
        self._store: Optional[PronunciationStore] = None
        self._task: Optional[asyncio.Task] = None
        self._logger = get_logger(__name__).bind(
            component="pronunciation_store_handle",
            db_path=str(self.db_path),
        )

    @property
    def ready(self) -> bool:
        return self._store is not None

    async def get(self) -> PronunciationStore:
        if self._store is not None:
            return self._store
        if self._task is None:
            self._task = asyncio.ensure_future(self._build())
            self._task.add_done_callback(self._on_build_done)
        # Shielded so a caller that gives up does not cancel the shared build.
        return await asyncio.shield(self._task)

    async def _build(self) -> PronunciationStore:
        with start_span(
            "pronunciation_store.build",
            {"db_path": str(self.db_path), "source": self.source.name},
        ) as span:
            try:
                store = await PronunciationStore.open(
                    self.db_path, self.source, rebuild=self.rebuild
                )
            except Exception as exc:
                record_exception(span, exc)
                self._logger.error(
                    "Pronunciation store build failed",
                    context={"source": self.source.name, "error": str(exc)},
                )
                raise StoreBuildError(
                    f"Could not build pronunciation store from {self.source.name}: {exc}"
                ) from exc
        if store.ingested:
            self.ingestion_count += 1
        self.rebuild = False
        return store

    def _on_build_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._task is task:
                self._task = None
            return
        self._store = task.result()

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            if not task.done():
                task.cancel()
            try:
                store = await task
            except (asyncio.CancelledError, StoreBuildError):
                store = None
            if store is not None and store is not self._store:
                store.close()
        if self._store is not None:
            self._store.close()
            self._store = None


__all__ = [
    "DEFAULT_DB_PATH",
    "IngestionReport",
    "PronunciationStore",
    "PronunciationStoreHandle",
]

"""Document service tying settings, analysis and completion together."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from ..analysis.diagnostics import Diagnostic, Position
from ..analysis.engine import AnalysisEngine
from ..core.document import Document
from ..core.pronunciation_store import PronunciationStoreHandle
from ..core.tokenizer import ParsedPoem, PhonemeCache, PoemTokenizer
from ..prediction.base import CompletionCandidate
from ..prediction.factory import VersePredictorFactory
from ..utils.observability import (
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from ..utils.telemetry import StructuredTelemetry
from .settings import CachingStrategy, DocumentSettings, DocumentSettingsStore

_REQUESTS = create_counter(
    "verse_requests_total",
    "Document requests handled, by kind.",
    label_names=("kind",),
)
_FAILURES = create_counter(
    "verse_request_failures_total",
    "Document requests that raised, by kind.",
    label_names=("kind",),
)
_DURATION = create_histogram(
    "verse_request_seconds",
    "Latency of document requests, by kind.",
    label_names=("kind",),
)
_POEM_CACHE = create_counter(
    "verse_poem_cache_total",
    "Parsed poem cache lookups, by outcome.",
    label_names=("result",),
)


class VerseService:
    """Answers diagnostics and completion requests for open documents."""

    def __init__(
        self,
        store_handle: PronunciationStoreHandle,
        *,
        settings_store: Optional[DocumentSettingsStore] = None,
        engine: Optional[AnalysisEngine] = None,
        predictor_factory: Optional[VersePredictorFactory] = None,
        telemetry: Optional[StructuredTelemetry] = None,
        max_cached_poems: int = 64,
    ) -> None:
        self.store_handle = store_handle
        self.settings_store = settings_store or DocumentSettingsStore()
        self.telemetry = telemetry or StructuredTelemetry()
        self.engine = engine or AnalysisEngine(telemetry=self.telemetry)
        self.predictor_factory = predictor_factory or VersePredictorFactory(store_handle)
        self._max_cached_poems = max(0, int(max_cached_poems))
        self._poems: OrderedDict[Tuple[str, int], ParsedPoem] = OrderedDict()
        self._phoneme_caches: Dict[str, PhonemeCache] = {}
        self._logger = get_logger(__name__).bind(component="verse_service")

    # Caches ----------------------------------------------------------------
    def _cached_poem(self, uri: str, version: int) -> Optional[ParsedPoem]:
        poem = self._poems.get((uri, version))
        if poem is None:
            _POEM_CACHE.labels(result="miss").inc()
            return None
        self._poems.move_to_end((uri, version))
        _POEM_CACHE.labels(result="hit").inc()
        return poem

    def _store_poem(self, uri: str, version: int, poem: ParsedPoem) -> None:
        # Older versions of the same document are never asked for again.
        for key in [key for key in self._poems if key[0] == uri]:
            del self._poems[key]
        self._poems[(uri, version)] = poem
        while len(self._poems) > self._max_cached_poems:
            self._poems.popitem(last=False)

    def phoneme_cache(self, uri: str) -> PhonemeCache:
        return self._phoneme_caches.setdefault(uri, {})

    async def parse(self, document: Document, settings: DocumentSettings) -> ParsedPoem:
        store = await self.store_handle.get()
        if settings.caching is CachingStrategy.LAZY:
            return await PoemTokenizer(store).tokenize(document.get_text())

        uri, version = document.uri, document.version
        poem = self._cached_poem(uri, version)
        if poem is None:
            tokenizer = PoemTokenizer(store, cache=self.phoneme_cache(uri))
            poem = await tokenizer.tokenize(document.get_text())
            self._store_poem(uri, version, poem)
        return poem

    # Requests --------------------------------------------------------------
    async def analyze(self, document: Document) -> List[Diagnostic]:
        """Diagnostics for the document's current version."""

        _REQUESTS.labels(kind="analyze").inc()
        started = time.perf_counter()
        with start_span("service.analyze", {"uri": document.uri, "version": document.version}) as span:
            try:
                settings = await self.settings_store.get(document.uri)
                poem = await self.parse(document, settings)
                diagnostics = self.engine.analyze(poem)
            except Exception as exc:
                _FAILURES.labels(kind="analyze").inc()
                record_exception(span, exc)
                self._logger.error(
                    "Analysis failed",
                    context={"uri": document.uri, "error": str(exc)},
                )
                raise
            finally:
                _DURATION.labels(kind="analyze").observe(time.perf_counter() - started)

        if not settings.show_all_errors:
            diagnostics = diagnostics[: settings.max_number_of_problems]
        self._logger.debug(
            "Analysis complete",
            context={"uri": document.uri, "diagnostics": len(diagnostics)},
        )
        return diagnostics

    async def complete(
        self,
        document: Document,
        position: Position,
        *,
        timeout: Optional[float] = None,
    ) -> List[CompletionCandidate]:
        """Completion candidates at ``position``; ``timeout`` bounds the call."""

        _REQUESTS.labels(kind="complete").inc()
        started = time.perf_counter()
        with start_span("service.complete", {"uri": document.uri, "line": position.line}) as span:
            try:
                settings = await self.settings_store.get(document.uri)
                predictor = await self.predictor_factory.get(settings)
                request = predictor.predict(position, document)
                if timeout is not None:
                    return await asyncio.wait_for(request, timeout)
                return await request
            except Exception as exc:
                _FAILURES.labels(kind="complete").inc()
                record_exception(span, exc)
                self._logger.error(
                    "Completion failed",
                    context={"uri": document.uri, "error": str(exc)},
                )
                raise
            finally:
                _DURATION.labels(kind="complete").observe(time.perf_counter() - started)

    # Lifecycle -------------------------------------------------------------
    def close_document(self, uri: str) -> None:
        """Drop everything cached for ``uri``; other documents keep theirs."""

        self.settings_store.invalidate(uri)
        self._phoneme_caches.pop(uri, None)
        for key in [key for key in self._poems if key[0] == uri]:
            del self._poems[key]

    def change_configuration(self) -> None:
        self._logger.info("Configuration changed; dropping cached settings and predictor")
        self.settings_store.clear()
        self.predictor_factory.invalidate()
        self._poems.clear()

    async def shutdown(self) -> None:
        await self.store_handle.close()


__all__ = ["VerseService"]

"""Completion from dictionary rhymes of the previous lines' endings."""

from __future__ import annotations

from typing import List

from ..analysis.diagnostics import Position
from ..app.settings import DocumentSettings
from ..core.document import Document
from ..core.pronunciation_store import PronunciationStoreHandle
from ..core.rhymes import RhymeMatcher, rhymes_for_many
from ..utils.observability import get_logger
from .base import CompletionCandidate, CursorContext, VersePredictor, as_candidates


class DictionaryPredictor(VersePredictor):
    """Suggests words rhyming with the ends of the three lines above."""

    def __init__(self, settings: DocumentSettings, matcher: RhymeMatcher) -> None:
        super().__init__(settings)
        self.matcher = matcher
        self._logger = get_logger(__name__).bind(component="dictionary_predictor")

    @classmethod
    async def create(
        cls,
        settings: DocumentSettings,
        store_handle: PronunciationStoreHandle,
    ) -> "DictionaryPredictor":
        store = await store_handle.get()
        return cls(settings, RhymeMatcher(store))

    async def predict(
        self, position: Position, document: Document
    ) -> List[CompletionCandidate]:
        context = CursorContext.capture(position, document)
        endings = context.recent_line_endings()
        self._logger.debug(
            "Completion request",
            context={"line": position.line, "character": position.character, "endings": endings},
        )
        rhymes = await rhymes_for_many(self.matcher, endings)
        # Store keys are uppercase; editors expect words as typed in prose.
        return as_candidates([word.lower() for group in rhymes for word in group])


__all__ = ["DictionaryPredictor"]

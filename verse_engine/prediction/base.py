"""Shared types for completion strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from ..analysis.diagnostics import Position
from ..app.settings import DocumentSettings
from ..core.document import Document
from ..core.pronunciation_store import PronunciationStoreHandle
from ..core.tokenizer import split_lines

RECENT_LINE_WINDOW = 3


class CompletionKind(IntEnum):
    TEXT = 1


@dataclass(frozen=True)
class CompletionCandidate:
    label: str
    kind: CompletionKind = CompletionKind.TEXT
    data: int = 0
    detail: Optional[str] = None
    documentation: Optional[str] = None


def resolve_completion(candidate: CompletionCandidate) -> CompletionCandidate:
    """Attach detail text to a candidate the user highlighted."""

    return replace(
        candidate,
        detail=candidate.detail or "Verse suggestion",
        documentation=candidate.documentation or f"Suggested continuation: {candidate.label}",
    )


def as_candidates(labels: Sequence[str]) -> List[CompletionCandidate]:
    return [CompletionCandidate(label=label, data=index) for index, label in enumerate(labels)]


@dataclass(frozen=True)
class CursorContext:
    """Text around the cursor, taken from one snapshot of the document."""

    lines: Tuple[str, ...]
    line: int
    prefix: str
    suffix: str

    @classmethod
    def capture(cls, position: Position, document: Document) -> "CursorContext":
        lines = tuple(split_lines(document.get_text()))
        current = lines[position.line] if 0 <= position.line < len(lines) else ""
        character = max(0, min(position.character, len(current)))
        return cls(
            lines=lines,
            line=position.line,
            prefix=current[:character],
            suffix=current[character:],
        )

    def preceding_lines(self, count: int) -> List[str]:
        """Up to ``count`` lines before the cursor line, oldest first."""

        start = max(0, self.line - count)
        return list(self.lines[start:max(0, self.line)])

    def following_text(self) -> str:
        return "\n".join([self.suffix, *self.lines[self.line + 1:]])

    def recent_line_endings(self, count: int = RECENT_LINE_WINDOW) -> List[str]:
        """Last whitespace-delimited token of each of the ``count`` previous lines."""

        endings: List[str] = []
        for text in self.preceding_lines(count):
            tokens = text.split()
            if tokens:
                endings.append(tokens[-1])
        return endings


class VersePredictor(ABC):
    """A completion strategy, constructed once per predictor type."""

    def __init__(self, settings: DocumentSettings) -> None:
        self.settings = settings

    @classmethod
    @abstractmethod
    async def create(
        cls,
        settings: DocumentSettings,
        store_handle: PronunciationStoreHandle,
    ) -> "VersePredictor":
        ...

    @abstractmethod
    async def predict(
        self, position: Position, document: Document
    ) -> List[CompletionCandidate]:
        ...


__all__ = [
    "CompletionCandidate",
    "CompletionKind",
    "CursorContext",
    "RECENT_LINE_WINDOW",
    "VersePredictor",
    "as_candidates",
    "resolve_completion",
]

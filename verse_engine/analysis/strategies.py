"""Diagnostic strategies run by the analysis engine."""

from __future__ import annotations

from typing import Dict, List, Protocol, Type

from ..core.tokenizer import ParsedPoem
from .diagnostics import Diagnostic, DiagnosticSeverity, Range

STRESSED_ENDING_MESSAGE = "Line ends with a stressed syllable."


class AnalysisStrategy(Protocol):
    """Produces diagnostics for a parsed poem; strategies never share state."""

    name: str

    def produce(self, poem: ParsedPoem) -> List[Diagnostic]:
        ...


class LineEndsWithStressedSyllable:
    """Hint on the last word of lines whose final phoneme carries stress."""

    name = "line_ends_with_stressed_syllable"

    def produce(self, poem: ParsedPoem) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        for index, line in enumerate(poem.lines):
            if not line.phonemes or line.phonemes[-1].stress == 0:
                continue
            last_word = line.last_word
            if last_word is None:
                continue
            diagnostics.append(
                Diagnostic(
                    severity=DiagnosticSeverity.HINT,
                    range=Range.on_line(index, last_word.start, last_word.end),
                    message=STRESSED_ENDING_MESSAGE,
                )
            )
        return diagnostics


ANALYSIS_STRATEGIES: Dict[str, Type[AnalysisStrategy]] = {
    LineEndsWithStressedSyllable.name: LineEndsWithStressedSyllable,
}


def default_strategies() -> List[AnalysisStrategy]:
    return [strategy() for strategy in ANALYSIS_STRATEGIES.values()]


__all__ = [
    "ANALYSIS_STRATEGIES",
    "AnalysisStrategy",
    "LineEndsWithStressedSyllable",
    "STRESSED_ENDING_MESSAGE",
    "default_strategies",
]

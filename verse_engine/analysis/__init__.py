"""Diagnostics over parsed poems."""

from .diagnostics import Diagnostic, DiagnosticSeverity, Position, Range, has_valid_range
from .engine import AnalysisEngine
from .strategies import (
    ANALYSIS_STRATEGIES,
    STRESSED_ENDING_MESSAGE,
    AnalysisStrategy,
    LineEndsWithStressedSyllable,
)

__all__ = [
    "ANALYSIS_STRATEGIES",
    "AnalysisEngine",
    "AnalysisStrategy",
    "Diagnostic",
    "DiagnosticSeverity",
    "LineEndsWithStressedSyllable",
    "Position",
    "Range",
    "STRESSED_ENDING_MESSAGE",
    "has_valid_range",
]

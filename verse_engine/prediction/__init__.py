"""Completion strategies and the factory that selects between them."""

from .base import (
    CompletionCandidate,
    CompletionKind,
    CursorContext,
    VersePredictor,
    resolve_completion,
)
from .dictionary import DictionaryPredictor
from .factory import PREDICTORS, VersePredictorFactory
from .generative import GeminiOracle, GenerativePredictor

__all__ = [
    "CompletionCandidate",
    "CompletionKind",
    "CursorContext",
    "DictionaryPredictor",
    "GeminiOracle",
    "GenerativePredictor",
    "PREDICTORS",
    "VersePredictor",
    "VersePredictorFactory",
    "resolve_completion",
]

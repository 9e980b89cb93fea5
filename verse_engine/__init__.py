"""Phonetic analysis and completion engine for poetry editors."""

from .errors import ConfigurationError, OracleResponseError, StoreBuildError, VerseError

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "OracleResponseError",
    "StoreBuildError",
    "VerseError",
    "__version__",
]

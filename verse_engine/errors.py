"""Exceptions raised by the verse engine."""

from __future__ import annotations


class VerseError(Exception):
    """Base class for every error the engine raises on purpose."""


class ConfigurationError(VerseError):
    """Settings are missing or name something the engine does not know."""


class StoreBuildError(VerseError):
    """Building the pronunciation store failed; the store is unusable."""


class OracleResponseError(VerseError):
    """The text-completion service answered with something unparsable."""

    def __init__(self, message: str, response_text: str = "") -> None:
        super().__init__(message)
        self.response_text = response_text


__all__ = [
    "VerseError",
    "ConfigurationError",
    "StoreBuildError",
    "OracleResponseError",
]

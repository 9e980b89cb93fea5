"""Minimal text document addressed by (line, character)."""

from __future__ import annotations

from typing import Protocol


class Document(Protocol):
    uri: str
    version: int

    def get_text(self) -> str:
        ...


class TextDocument:
    """In-memory document; ``update`` bumps the version like an editor would."""

    def __init__(self, uri: str, text: str = "", version: int = 0) -> None:
        self.uri = uri
        self.version = version
        self._text = text

    def get_text(self) -> str:
        return self._text

    def update(self, text: str) -> None:
        self._text = text
        self.version += 1

    def __repr__(self) -> str:
        return f"TextDocument(uri={self.uri!r}, version={self.version})"


__all__ = ["Document", "TextDocument"]

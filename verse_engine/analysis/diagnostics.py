"""Diagnostic data model and range validation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional


class DiagnosticSeverity(IntEnum):
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Optional[Position]
    end: Optional[Position]

    @classmethod
    def on_line(cls, line: int, start: int, end: int) -> "Range":
        return cls(Position(line, start), Position(line, end))


@dataclass(frozen=True)
class Diagnostic:
    severity: DiagnosticSeverity
    range: Optional[Range]
    message: str
    source: str = "verse"

    def to_dict(self) -> Dict[str, Any]:
        """Editor-protocol shaped payload."""

        if not has_valid_range(self):
            raise ValueError(f"Diagnostic has no usable range: {self!r}")
        return {
            "severity": int(self.severity),
            "range": {
                "start": {"line": self.range.start.line, "character": self.range.start.character},
                "end": {"line": self.range.end.line, "character": self.range.end.character},
            },
            "message": self.message,
            "source": self.source,
        }


def _is_coordinate(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_position(position: Any) -> bool:
    return (
        position is not None
        and _is_coordinate(getattr(position, "line", None))
        and _is_coordinate(getattr(position, "character", None))
    )


def has_valid_range(diagnostic: Diagnostic) -> bool:
    """True when the range and both of its ends carry usable coordinates."""

    span = getattr(diagnostic, "range", None)
    if span is None:
        return False
    return _is_position(getattr(span, "start", None)) and _is_position(
        getattr(span, "end", None)
    )


__all__ = [
    "Diagnostic",
    "DiagnosticSeverity",
    "Position",
    "Range",
    "has_valid_range",
]

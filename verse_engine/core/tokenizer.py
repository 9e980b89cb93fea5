"""Split poems into lines of words and separators with pronunciations."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, MutableMapping, Optional, Protocol, Tuple, Union

from ..utils.observability import get_logger
from .phonemes import Phoneme, PronunciationRecord, normalize_word

_LINE_BREAK = re.compile(r"\r?\n")

PhonemeCache = MutableMapping[str, Tuple[Phoneme, ...]]


class PronunciationLookup(Protocol):
    async def lookup(self, word: str) -> Optional[PronunciationRecord]:
        ...


@dataclass(frozen=True)
class Word:
    text: str
    start: int
    phonemes: Tuple[Phoneme, ...] = ()

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    def __str__(self) -> str:
        return f"{self.text} ({' '.join(str(p) for p in self.phonemes)})"


TextNode = Union[Word, str]


def node_text(node: TextNode) -> str:
    return node.text if isinstance(node, Word) else node


@dataclass(frozen=True)
class Line:
    """One poem line; ``words`` and ``phonemes`` are derived on construction."""

    text: str
    nodes: Tuple[TextNode, ...]
    words: Tuple[Word, ...] = field(init=False)
    phonemes: Tuple[Phoneme, ...] = field(init=False)

    def __post_init__(self) -> None:
        words = tuple(node for node in self.nodes if isinstance(node, Word))
        object.__setattr__(self, "words", words)
        object.__setattr__(
            self, "phonemes", tuple(p for word in words for p in word.phonemes)
        )

    def __len__(self) -> int:
        return len(self.text)

    @property
    def last_word(self) -> Optional[Word]:
        return self.words[-1] if self.words else None


@dataclass(frozen=True)
class ParsedPoem:
    lines: Tuple[Line, ...]

    def __len__(self) -> int:
        return len(self.lines)


def split_lines(text: str) -> List[str]:
    return _LINE_BREAK.split(text)


def scan_runs(line: str) -> List[Tuple[str, int, bool]]:
    """Return ``(run, start, alphabetic)`` for each letter / non-letter run."""

    runs: List[Tuple[str, int, bool]] = []
    buffer: List[str] = []
    start = 0
    alphabetic = False
    for index, char in enumerate(line):
        is_letter = char.isascii() and char.isalpha()
        if buffer and is_letter != alphabetic:
            runs.append(("".join(buffer), start, alphabetic))
            buffer = []
        if not buffer:
            start = index
            alphabetic = is_letter
        buffer.append(char)
    if buffer:
        runs.append(("".join(buffer), start, alphabetic))
    return runs


class PoemTokenizer:
    """Turn raw text into a :class:`ParsedPoem`.

    ``cache`` is an optional per-document mapping from normalized word to
    phonemes; it is checked before the store and filled after each lookup.
    """

    def __init__(
        self,
        store: PronunciationLookup,
        cache: Optional[PhonemeCache] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self._logger = get_logger(__name__).bind(component="poem_tokenizer")

    async def _phonemes_for(self, text: str) -> Tuple[Phoneme, ...]:
        key = normalize_word(text)
        if self.cache is not None and key in self.cache:
            return self.cache[key]
        record = await self.store.lookup(key)
        phonemes = record.phonemes if record is not None else ()
        if self.cache is not None:
            self.cache[key] = phonemes
        return phonemes

    async def _word(self, text: str, start: int) -> Word:
        return Word(text=text, start=start, phonemes=await self._phonemes_for(text))

    async def tokenize_line(self, line: str) -> Line:
        runs = scan_runs(line)
        words = await asyncio.gather(
            *(self._word(run, start) for run, start, alphabetic in runs if alphabetic)
        )
        pending = iter(words)
        nodes = tuple(
            next(pending) if alphabetic else run for run, _, alphabetic in runs
        )
        return Line(text=line, nodes=nodes)

    async def tokenize(self, text: str) -> ParsedPoem:
        lines = await asyncio.gather(
            *(self.tokenize_line(line) for line in split_lines(text))
        )
        poem = ParsedPoem(lines=tuple(lines))
        self._logger.debug(
            "Tokenized poem",
            context={
                "lines": len(poem),
                "words": sum(len(line.words) for line in poem.lines),
            },
        )
        return poem


__all__ = [
    "Line",
    "ParsedPoem",
    "PoemTokenizer",
    "TextNode",
    "Word",
    "node_text",
    "scan_runs",
    "split_lines",
]

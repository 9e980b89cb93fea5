"""Phonemes and pronunciation records parsed from CMU dictionary notation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Set, Tuple

VOWEL_PHONEMES: Set[str] = {
    "AA",
    "AE",
    "AH",
    "AO",
    "AW",
    "AY",
    "EH",
    "ER",
    "EY",
    "IH",
    "IY",
    "OW",
    "OY",
    "UH",
    "UW",
}

NULL_RHYME_KEY = "NULL"
RHYME_KEY_WINDOWS: Tuple[int, ...] = (1, 2, 3)

_PHONEME_PATTERN = re.compile(r"^([A-Z]+)(\d*)$")
_WORD_VARIANT_PATTERN = re.compile(r"\(\d+\)$")
_NON_LETTER_PATTERN = re.compile(r"[^A-Z]")
_PLAIN_SPELLING_PATTERN = re.compile(r"[A-Za-z]+")


def normalize_word(word: str) -> str:
    """Uppercase ``word`` and drop everything that is not A-Z."""

    return _NON_LETTER_PATTERN.sub("", str(word or "").upper())


def strip_variant(word: str) -> str:
    """Remove the ``(1)`` style suffix marking alternate pronunciations."""

    return _WORD_VARIANT_PATTERN.sub("", word)


def is_plain_spelling(raw_word: str) -> bool:
    """True when ``raw_word`` is letters only once its variant suffix is removed."""

    return _PLAIN_SPELLING_PATTERN.fullmatch(strip_variant(raw_word)) is not None


@dataclass(frozen=True)
class Phoneme:
    symbol: str
    stress: int = 0

    @classmethod
    def parse(cls, token: str) -> "Phoneme":
        """Parse ``<SYMBOL><digit>?`` notation, e.g. ``EH1`` or ``T``."""

        match = _PHONEME_PATTERN.match(token.strip().upper())
        if match is None:
            raise ValueError(f"Malformed phoneme {token!r}")
        symbol, digits = match.groups()
        return cls(symbol=symbol, stress=int(digits) if digits else 0)

    @property
    def is_vowel(self) -> bool:
        return self.symbol in VOWEL_PHONEMES

    def __str__(self) -> str:
        return f"{self.symbol}{self.stress}" if self.is_vowel else self.symbol


def rhyme_keys_for(symbols: Sequence[str]) -> Tuple[str, str, str]:
    """Return the right-aligned 1, 2 and 3 symbol windows of ``symbols``.

    A window wider than the pronunciation yields :data:`NULL_RHYME_KEY`.
    """

    keys = []
    for window in RHYME_KEY_WINDOWS:
        if len(symbols) < window:
            keys.append(NULL_RHYME_KEY)
        else:
            keys.append(" ".join(symbols[-window:]))
    return keys[0], keys[1], keys[2]


@dataclass(frozen=True)
class PronunciationRecord:
    """Stored phonetic data for one normalized word."""

    word: str
    phonemes: Tuple[Phoneme, ...]
    symbols: Tuple[str, ...] = field(init=False)
    rhyme_keys: Tuple[str, str, str] = field(init=False)

    def __post_init__(self) -> None:
        symbols = tuple(phoneme.symbol for phoneme in self.phonemes)
        object.__setattr__(self, "symbols", symbols)
        object.__setattr__(self, "rhyme_keys", rhyme_keys_for(symbols))

    @property
    def syllable_count(self) -> int:
        return len(self.phonemes)

    @property
    def phonemes_with_stress(self) -> str:
        return " ".join(
            f"{p.symbol}{p.stress}" if p.stress or p.is_vowel else p.symbol
            for p in self.phonemes
        )

    def rhyme_key(self, tier: int) -> str:
        """Return the rhyme key for a 1, 2 or 3 syllable window."""

        if tier not in RHYME_KEY_WINDOWS:
            raise ValueError(f"Unsupported rhyme tier {tier}")
        return self.rhyme_keys[tier - 1]

    @classmethod
    def from_tokens(cls, word: str, tokens: Iterable[str]) -> "PronunciationRecord":
        return cls(
            word=normalize_word(word),
            phonemes=tuple(Phoneme.parse(token) for token in tokens),
        )


def parse_source_line(line: str) -> Optional[PronunciationRecord]:
    """Parse one ``WORD  PH1 PH2 ...`` line of a pronunciation source.

    Comment lines (``;``), blank lines, words without letters and entries
    without phonemes return ``None``. Malformed phoneme tokens raise
    :class:`ValueError`.
    """

    entry = line.strip()
    if not entry or entry.startswith(";"):
        return None

    raw_word, *tokens = entry.split()
    word = normalize_word(strip_variant(raw_word))
    if not word or not tokens:
        return None

    return PronunciationRecord.from_tokens(word, tokens)


__all__ = [
    "NULL_RHYME_KEY",
    "RHYME_KEY_WINDOWS",
    "VOWEL_PHONEMES",
    "Phoneme",
    "PronunciationRecord",
    "is_plain_spelling",
    "normalize_word",
    "parse_source_line",
    "rhyme_keys_for",
    "strip_variant",
]

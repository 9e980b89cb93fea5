"""Rhyme retrieval over the pronunciation store's rhyme-key index."""

from __future__ import annotations

import asyncio
from typing import List, Protocol, Sequence, Set, Tuple

from ..utils.observability import create_counter, get_logger
from .phonemes import PronunciationRecord, normalize_word

DEFAULT_RHYME_LIMIT = 10

# (tier, per-tier cap), strongest match first.
RHYME_TIERS: Tuple[Tuple[int, int], ...] = ((3, 3), (2, 3), (1, 10))

_RHYME_REQUESTS = create_counter(
    "verse_rhyme_requests_total",
    "Rhyme lookups by outcome.",
    label_names=("result",),
)


class RhymeIndex(Protocol):
    async def lookup(self, word: str) -> PronunciationRecord | None:
        ...

    async def find_by_rhyme_key(
        self, tier: int, key: str, limit: int, *, exclude: str | None = None
    ) -> List[str]:
        ...


class RhymeMatcher:
    """Rank rhyme candidates by how many trailing syllables they share."""

    def __init__(self, store: RhymeIndex) -> None:
        self.store = store
        self._logger = get_logger(__name__).bind(component="rhyme_matcher")

    async def rhyme_tiers(self, word: str) -> List[Tuple[int, List[str]]]:
        """Return ``(tier, words)`` pairs for the 3, 2 and 1 syllable keys."""

        record = await self.store.lookup(word)
        if record is None:
            _RHYME_REQUESTS.labels(result="unknown_word").inc()
            self._logger.debug("No pronunciation for rhyme source", context={"word": word})
            return []

        results = await asyncio.gather(
            *(
                self.store.find_by_rhyme_key(
                    tier, record.rhyme_key(tier), cap, exclude=record.word
                )
                for tier, cap in RHYME_TIERS
            )
        )
        return [(tier, list(words)) for (tier, _), words in zip(RHYME_TIERS, results)]

    async def rhymes_for(self, word: str, limit: int = DEFAULT_RHYME_LIMIT) -> List[str]:
        """Return up to ``limit`` rhymes, longer matches first, without repeats."""

        if limit <= 0 or not normalize_word(word):
            return []

        tiers = await self.rhyme_tiers(word)
        ranked = merge_tiers(words for _, words in tiers)[:limit]
        _RHYME_REQUESTS.labels(result="found" if ranked else "empty").inc()
        return ranked


def merge_tiers(tiers) -> List[str]:
    """Concatenate tier results keeping only the first sighting of a word."""

    seen: Set[str] = set()
    merged: List[str] = []
    for words in tiers:
        for candidate in words:
            if candidate in seen:
                continue
            seen.add(candidate)
            merged.append(candidate)
    return merged


async def rhymes_for_many(
    matcher: RhymeMatcher, words: Sequence[str], limit: int = DEFAULT_RHYME_LIMIT
) -> List[List[str]]:
    """Query several source words concurrently, preserving their order."""

    return list(await asyncio.gather(*(matcher.rhymes_for(word, limit) for word in words)))


__all__ = [
    "DEFAULT_RHYME_LIMIT",
    "RHYME_TIERS",
    "RhymeMatcher",
    "merge_tiers",
    "rhymes_for_many",
]

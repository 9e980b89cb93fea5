"""Bulk pronunciation sources the store is built from."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import AsyncIterator, List, Optional, Protocol

import httpx
import pronouncing

from ..utils.observability import get_logger

CMU_DICT_URL = "https://svn.code.sf.net/p/cmusphinx/code/trunk/cmudict/cmudict-0.7b"
DEFAULT_FETCH_TIMEOUT = 60.0

_logger = get_logger(__name__).bind(component="pronunciation_source")


class PronunciationSource(Protocol):
    """Anything that can stream raw ``WORD  PH1 PH2`` lines."""

    name: str

    def lines(self) -> AsyncIterator[str]:
        ...


class FileSource:
    """Reads a CMU formatted dictionary from disk."""

    def __init__(self, path: Path | str, *, encoding: str = "latin-1") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self.name = f"file:{self.path}"

    async def lines(self) -> AsyncIterator[str]:
        text = await asyncio.to_thread(
            self.path.read_text, encoding=self.encoding, errors="replace"
        )
        for line in text.splitlines():
            yield line


class UrlSource:
    """Downloads the dictionary over HTTP."""

    def __init__(
        self,
        url: str = CMU_DICT_URL,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        encoding: str = "latin-1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.encoding = encoding
        self._transport = transport
        self.name = f"url:{url}"

    async def lines(self) -> AsyncIterator[str]:
        _logger.info("Downloading pronunciation dictionary", context={"url": self.url})
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.get(self.url)
            response.raise_for_status()
        text = response.content.decode(self.encoding, errors="replace")
        _logger.info(
            "Pronunciation dictionary downloaded",
            context={"url": self.url, "bytes": len(response.content)},
        )
        for line in text.splitlines():
            yield line


def _bundled_entries() -> List[str]:
    pronouncing.init_cmu()
    return [f"{word.upper()}  {phones}" for word, phones in pronouncing.pronunciations]


class BundledSource:
    """The CMU corpus that ships with :mod:`pronouncing`; needs no network."""

    name = "bundled:pronouncing"

    async def lines(self) -> AsyncIterator[str]:
        for line in await asyncio.to_thread(_bundled_entries):
            yield line


def default_source() -> PronunciationSource:
    """Pick a source from ``VERSE_DICT_PATH`` / ``VERSE_DICT_URL``.

    Falls back to the bundled corpus when neither is set.
    """

    path = os.environ.get("VERSE_DICT_PATH")
    if path:
        return FileSource(path)
    url = os.environ.get("VERSE_DICT_URL")
    if url:
        return UrlSource(url)
    return BundledSource()


__all__ = [
    "CMU_DICT_URL",
    "PronunciationSource",
    "FileSource",
    "UrlSource",
    "BundledSource",
    "default_source",
]

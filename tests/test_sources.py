import asyncio

import httpx
import pytest

from verse_engine.core.pronunciation_store import PronunciationStore
from verse_engine.core.sources import BundledSource, FileSource, UrlSource, default_source


async def _collect(source):
    return [line async for line in source.lines()]


def test_file_source_reads_latin1(tmp_path):
    path = tmp_path / "dict.txt"
    path.write_bytes("CAF\xc9  K AE0 F EY1\nRED  R EH1 D\n".encode("latin-1"))

    lines = asyncio.run(_collect(FileSource(path)))

    assert lines == ["CAF\xc9  K AE0 F EY1", "RED  R EH1 D"]


def test_url_source_downloads_dictionary(tmp_path):
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, content=b";;; header\nMOON  M UW1 N\nJUNE  JH UW1 N\n")

    source = UrlSource("https://example.test/cmudict", transport=httpx.MockTransport(handler))
    store = asyncio.run(PronunciationStore.open(tmp_path / "url.db", source))
    try:
        record = asyncio.run(store.lookup("june"))
    finally:
        store.close()

    assert requested == ["https://example.test/cmudict"]
    assert record.rhyme_key(2) == "UW N"


def test_url_source_raises_on_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    source = UrlSource("https://example.test/missing", transport=transport)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_collect(source))


def test_default_source_prefers_environment(monkeypatch, tmp_path):
    monkeypatch.delenv("VERSE_DICT_URL", raising=False)
    monkeypatch.setenv("VERSE_DICT_PATH", str(tmp_path / "dict.txt"))
    assert isinstance(default_source(), FileSource)

    monkeypatch.delenv("VERSE_DICT_PATH")
    monkeypatch.setenv("VERSE_DICT_URL", "https://example.test/dict")
    source = default_source()
    assert isinstance(source, UrlSource)
    assert source.url == "https://example.test/dict"

    monkeypatch.delenv("VERSE_DICT_URL")
    assert isinstance(default_source(), BundledSource)

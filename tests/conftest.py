import asyncio
import sys
from pathlib import Path
from typing import AsyncIterator

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from verse_engine.core.pronunciation_store import PronunciationStore, PronunciationStoreHandle

SAMPLE_DICTIONARY = """\
;;; small sample of the CMU pronouncing dictionary
LIGHT  L AY1 T
NIGHT  N AY1 T
SIGHT  S AY1 T
BRIGHT  B R AY1 T
FLIGHT  F L AY1 T
ROSES  R OW1 Z IH0 Z
ARE  AA1 R
RED  R EH1 D
BED  B EH1 D
HEAD  HH EH1 D
VIOLETS  V AY1 AH0 L AH0 T S
BLUE  B L UW1
TRUE  T R UW1
YOU  Y UW1
SUGAR  SH UH1 G ER0
IS  IH1 Z
SWEET  S W IY1 T
A  AH0
THE  DH AH0

LIGHT(1)  L AY1 D
"""


class CountingSource:
    """In-memory pronunciation source that records how often it is read."""

    def __init__(
        self,
        text: str = SAMPLE_DICTIONARY,
        *,
        fail: bool = False,
        delay: float = 0.0,
        name: str = "memory:test",
    ) -> None:
        self.text = text
        self.fail = fail
        self.delay = delay
        self.name = name
        self.reads = 0

    async def lines(self) -> AsyncIterator[str]:
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise OSError("dictionary unavailable")
        for line in self.text.splitlines():
            yield line


@pytest.fixture
def sample_source() -> CountingSource:
    return CountingSource()


@pytest.fixture
def dictionary_file(tmp_path) -> Path:
    path = tmp_path / "cmudict.txt"
    path.write_text(SAMPLE_DICTIONARY, encoding="latin-1")
    return path


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "rhyme_dict" / "rhyme_dict.db"


@pytest.fixture
def store(db_path, sample_source):
    built = asyncio.run(PronunciationStore.open(db_path, sample_source))
    yield built
    built.close()


@pytest.fixture
def store_handle(db_path, sample_source) -> PronunciationStoreHandle:
    return PronunciationStoreHandle(sample_source, db_path)


"""Phonetic core: pronunciations, rhymes and tokenization."""

from .phonemes import (
    NULL_RHYME_KEY,
    VOWEL_PHONEMES,
    Phoneme,
    PronunciationRecord,
    normalize_word,
    parse_source_line,
)
from .pronunciation_store import (
    DEFAULT_DB_PATH,
    IngestionReport,
    PronunciationStore,
    PronunciationStoreHandle,
)
from .document import Document, TextDocument
from .rhymes import RhymeMatcher
from .sources import BundledSource, FileSource, UrlSource, default_source
from .tokenizer import Line, ParsedPoem, PoemTokenizer, Word

__all__ = [
    "NULL_RHYME_KEY",
    "VOWEL_PHONEMES",
    "Phoneme",
    "PronunciationRecord",
    "normalize_word",
    "parse_source_line",
    "DEFAULT_DB_PATH",
    "IngestionReport",
    "PronunciationStore",
    "PronunciationStoreHandle",
    "Document",
    "TextDocument",
    "RhymeMatcher",
    "BundledSource",
    "FileSource",
    "UrlSource",
    "default_source",
    "Line",
    "ParsedPoem",
    "PoemTokenizer",
    "Word",
]

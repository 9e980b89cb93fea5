"""Completion through a generative text service (Gemini)."""

from __future__ import annotations

import asyncio
import functools
import json
import re
from typing import Any, Dict, List, Optional, Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..analysis.diagnostics import Position
from ..app.settings import DocumentSettings
from ..core.document import Document
from ..core.pronunciation_store import PronunciationStoreHandle
from ..core.rhymes import RhymeMatcher, rhymes_for_many
from ..core.tokenizer import PoemTokenizer
from ..errors import ConfigurationError, OracleResponseError, StoreBuildError
from ..utils.observability import create_counter, get_logger, start_span
from .base import CompletionCandidate, CursorContext, VersePredictor, as_candidates

CONTEXT_LINES = 10
RHYME_HINT_LIMIT = 5
DEFAULT_RETRIES = 3

COMPLETION_SCHEMA: Dict[str, Any] = {
    "description": "List of autocomplete suggestions",
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "completion": {
                "type": "STRING",
                "description": "Words (or phrases) that could be used to complete the poem",
                "nullable": False,
            },
        },
        "required": ["completion"],
    },
}

_RETRY_DELAY_RE = re.compile(r"retry[^\d]*(\d+(?:\.\d+)?)\s*s", re.IGNORECASE)
_TRAILING_WORD_RE = re.compile(r"(\S*)$")

_ORACLE_CALLS = create_counter(
    "verse_oracle_calls_total",
    "Calls to the text-completion service by outcome.",
    label_names=("result",),
)


class CompletionOracle(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


@functools.lru_cache(maxsize=4)
def _get_client(api_key: str) -> genai.Client:
    # The client owns an HTTP pool; build one per key and reuse it.
    return genai.Client(api_key=api_key)


def _retry_delay(error: Exception, attempt: int) -> float:
    match = _RETRY_DELAY_RE.search(str(error))
    if match:
        return float(match.group(1))
    return float(2 ** attempt)


class GeminiOracle:
    """Asks Gemini for a JSON array matching :data:`COMPLETION_SCHEMA`."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        max_retries: int = DEFAULT_RETRIES,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_retries = max_retries
        self._logger = get_logger(__name__).bind(component="gemini_oracle", model=model)

    async def complete(self, prompt: str) -> str:
        client = _get_client(self.api_key)
        config = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=COMPLETION_SCHEMA,
        )
        attempt = 0
        while True:
            try:
                response = await client.aio.models.generate_content(
                    model=self.model, contents=prompt, config=config
                )
            except genai_errors.ClientError as exc:
                if exc.code != 429 or "PerDay" in str(exc):
                    _ORACLE_CALLS.labels(result="error").inc()
                    raise
                attempt += 1
                if attempt > self.max_retries:
                    _ORACLE_CALLS.labels(result="rate_limited").inc()
                    raise
                delay = _retry_delay(exc, attempt)
                self._logger.warning(
                    "Rate limited by completion service",
                    context={"attempt": attempt, "delay": delay},
                )
                await asyncio.sleep(delay)
                continue
            text = response.text
            if text is None:
                _ORACLE_CALLS.labels(result="empty").inc()
                raise OracleResponseError("Completion service returned no text")
            _ORACLE_CALLS.labels(result="ok").inc()
            return text


def trailing_word(prefix: str) -> str:
    match = _TRAILING_WORD_RE.search(prefix)
    return match.group(1) if match else ""


def continues_word(prefix: str) -> bool:
    """True when the cursor sits right after a non-whitespace character."""

    return bool(prefix) and not prefix[-1].isspace()


def build_prompt(
    context: CursorContext,
    *,
    prosody: Optional[List[str]] = None,
    rhyme_hints: Optional[Dict[str, List[str]]] = None,
) -> str:
    preceding = "\n".join([*context.preceding_lines(CONTEXT_LINES), context.prefix])
    sections = [
        "You are an expert in English poetry.",
        "A student has provided you with a poem. The lines before where you need to work are:",
        f"POEM>>>\n{preceding}\n<<<END POEM",
        "And the content following where you need to work is:",
        f"POEM>>>\n{context.following_text()}\n<<<END POEM",
    ]
    if prosody:
        sections.append(
            "Stress analysis of the preceding lines (x = unstressed, / = stressed):\n"
            + "\n".join(prosody)
        )
    if rhyme_hints:
        hint_lines = [
            f'- "{word}" rhymes with: {", ".join(rhymes)}'
            for word, rhymes in rhyme_hints.items()
            if rhymes
        ]
        if hint_lines:
            sections.append(
                "Words that rhyme with the ends of the previous lines:\n" + "\n".join(hint_lines)
            )
    if continues_word(context.prefix):
        sections.append(
            f'The last word of the poem so far is "{trailing_word(context.prefix)}". '
            "Start every possible completion with that prefix."
        )
    sections.extend(
        [
            "Suggest some possible completions for the part of the poem where you need to work.",
            'For example, if the poem so far is "Roses are red, violets are blue," consider:\n'
            '[{"completion": "sugar"}, {"completion": "sugar is sweet"}, '
            '{"completion": "sugar is sweet, and so are you"}]',
            "Provide only short completions matching the topic, rhyme, and meter of the poem. "
            "Never more than enough to finish the current line.",
            "Return: Array<{\"completion\": string}>",
        ]
    )
    return "\n\n".join(sections)


def parse_completions(text: str) -> List[str]:
    """Parse the oracle's JSON array; anything else is an error."""

    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise OracleResponseError(
            f"Completion response is not valid JSON: {exc}", response_text=text
        ) from exc
    if not isinstance(payload, list):
        raise OracleResponseError(
            "Completion response is not a JSON array", response_text=text
        )
    labels: List[str] = []
    for item in payload:
        completion = item.get("completion") if isinstance(item, dict) else None
        if isinstance(completion, str) and completion.strip():
            labels.append(completion)
    return labels


class GenerativePredictor(VersePredictor):
    """Delegates completions to a text-completion oracle."""

    def __init__(
        self,
        settings: DocumentSettings,
        store_handle: Optional[PronunciationStoreHandle] = None,
        *,
        oracle: Optional[CompletionOracle] = None,
    ) -> None:
        super().__init__(settings)
        self.store_handle = store_handle
        self._oracle = oracle
        self._logger = get_logger(__name__).bind(component="generative_predictor")

    @classmethod
    async def create(
        cls,
        settings: DocumentSettings,
        store_handle: PronunciationStoreHandle,
    ) -> "GenerativePredictor":
        get_logger(__name__).info(
            "Creating generative predictor", context={"model": settings.gemini_model}
        )
        return cls(settings, store_handle)

    def _require_oracle(self) -> CompletionOracle:
        if not self.settings.gemini_api_key:
            raise ConfigurationError("No Gemini API key found in settings")
        if self._oracle is None:
            self._oracle = GeminiOracle(
                self.settings.gemini_api_key, self.settings.gemini_model
            )
        return self._oracle

    async def _phonetic_context(
        self, context: CursorContext
    ) -> tuple[Optional[List[str]], Optional[Dict[str, List[str]]]]:
        wants_prosody = self.settings.include_prosody
        wants_hints = self.settings.include_rhyme_hints
        if self.store_handle is None or not (wants_prosody or wants_hints):
            return None, None
        try:
            store = await self.store_handle.get()
        except StoreBuildError as exc:
            self._logger.warning(
                "Pronunciations unavailable; prompting without phonetic context",
                context={"error": str(exc)},
            )
            return None, None

        prosody: Optional[List[str]] = None
        if wants_prosody:
            lines = [text for text in context.preceding_lines(CONTEXT_LINES) if text.strip()]
            poem = await PoemTokenizer(store).tokenize("\n".join(lines))
            prosody = []
            for line in poem.lines:
                vowels = [p for p in line.phonemes if p.is_vowel]
                pattern = "".join("/" if p.stress else "x" for p in vowels)
                prosody.append(f"{len(vowels)} syllables, {pattern or '?'}: {line.text}")

        hints: Optional[Dict[str, List[str]]] = None
        if wants_hints:
            endings = context.recent_line_endings()
            found = await rhymes_for_many(RhymeMatcher(store), endings, RHYME_HINT_LIMIT)
            hints = {word: [r.lower() for r in rhymes] for word, rhymes in zip(endings, found)}
        return prosody, hints

    async def predict(
        self, position: Position, document: Document
    ) -> List[CompletionCandidate]:
        oracle = self._require_oracle()
        context = CursorContext.capture(position, document)
        prosody, hints = await self._phonetic_context(context)
        prompt = build_prompt(context, prosody=prosody, rhyme_hints=hints)

        with start_span(
            "prediction.generative",
            {"line": position.line, "character": position.character},
        ):
            text = await oracle.complete(prompt)
        try:
            labels = parse_completions(text)
        except OracleResponseError:
            self._logger.error(
                "Could not parse completion response",
                context={"response": text[:200]},
            )
            raise
        return as_candidates(labels)


__all__ = [
    "COMPLETION_SCHEMA",
    "CompletionOracle",
    "GeminiOracle",
    "GenerativePredictor",
    "build_prompt",
    "continues_word",
    "parse_completions",
    "trailing_word",
]

import asyncio
import json

import pytest

from conftest import CountingSource
from verse_engine.analysis.diagnostics import Position
from verse_engine.app.settings import DocumentSettings
from verse_engine.core.document import TextDocument
from verse_engine.core.pronunciation_store import PronunciationStoreHandle
from verse_engine.errors import ConfigurationError, OracleResponseError
from verse_engine.prediction.base import CursorContext
from verse_engine.prediction.generative import (
    GenerativePredictor,
    build_prompt,
    continues_word,
    parse_completions,
    trailing_word,
)

PREFIX_INSTRUCTION = "Start every possible completion with that prefix."


class FakeOracle:
    def __init__(self, response="[]"):
        self.response = response
        self.prompts = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        return self.response


def _settings(**overrides):
    values = {"predictor_type": "gemini", "gemini_api_key": "test-key"}
    values.update(overrides)
    return DocumentSettings(**values)


def _predict(predictor, text, position):
    return asyncio.run(predictor.predict(position, TextDocument("file:///p.poem", text)))


def test_missing_api_key_fails_before_calling_the_oracle():
    oracle = FakeOracle()
    predictor = GenerativePredictor(_settings(gemini_api_key=None), oracle=oracle)

    with pytest.raises(ConfigurationError):
        _predict(predictor, "Roses are red\n", Position(1, 0))
    assert oracle.prompts == []


def test_completions_become_candidates_in_order():
    oracle = FakeOracle(
        json.dumps([{"completion": "sugar"}, {"completion": "sugar is sweet"}, {"other": 1}])
    )
    predictor = GenerativePredictor(_settings(), oracle=oracle)

    candidates = _predict(predictor, "Roses are red,\nViolets are blue,\n", Position(2, 0))

    assert [c.label for c in candidates] == ["sugar", "sugar is sweet"]
    assert [c.data for c in candidates] == [0, 1]
    assert "Violets are blue," in oracle.prompts[0]


def test_malformed_response_raises():
    predictor = GenerativePredictor(_settings(), oracle=FakeOracle("not json"))

    with pytest.raises(OracleResponseError) as excinfo:
        _predict(predictor, "Roses are red\n", Position(1, 0))
    assert excinfo.value.response_text == "not json"


def test_non_array_response_raises():
    with pytest.raises(OracleResponseError):
        parse_completions('{"completion": "sugar"}')


def test_prefix_instruction_only_when_cursor_follows_a_word():
    mid_word = FakeOracle()
    after_space = FakeOracle()

    _predict(GenerativePredictor(_settings(), oracle=mid_word), "Violets are bl", Position(0, 14))
    _predict(GenerativePredictor(_settings(), oracle=after_space), "Violets are ", Position(0, 12))

    assert PREFIX_INSTRUCTION in mid_word.prompts[0]
    assert 'The last word of the poem so far is "bl"' in mid_word.prompts[0]
    assert PREFIX_INSTRUCTION not in after_space.prompts[0]


def test_prefix_helpers():
    assert continues_word("sugar is sw")
    assert not continues_word("sugar is ")
    assert not continues_word("")
    assert trailing_word("sugar is sw") == "sw"


def test_prompt_carries_context_before_and_after_cursor():
    document = TextDocument("u", "one\ntwo\nthree four\nfive")
    context = CursorContext.capture(Position(2, 5), document)

    prompt = build_prompt(context, prosody=["1 syllables, /: two"], rhyme_hints={"two": ["blue"]})

    assert "POEM>>>\none\ntwo\nthree\n<<<END POEM" in prompt
    assert "POEM>>>\n four\nfive\n<<<END POEM" in prompt
    assert "1 syllables, /: two" in prompt
    assert '"two" rhymes with: blue' in prompt


def test_phonetic_context_adds_prosody_and_rhyme_hints(store_handle):
    oracle = FakeOracle()
    predictor = GenerativePredictor(_settings(), store_handle, oracle=oracle)

    async def scenario():
        try:
            await predictor.predict(Position(1, 0), TextDocument("u", "Roses are red\n"))
        finally:
            await store_handle.close()

    asyncio.run(scenario())
    prompt = oracle.prompts[0]

    assert "4 syllables, /x//: Roses are red" in prompt
    assert '"red" rhymes with: bed, head' in prompt


def test_store_failure_falls_back_to_plain_prompt(tmp_path, caplog):
    handle = PronunciationStoreHandle(CountingSource(fail=True), tmp_path / "broken.db")
    oracle = FakeOracle('[{"completion": "sugar"}]')
    predictor = GenerativePredictor(_settings(), handle, oracle=oracle)

    async def scenario():
        try:
            return await predictor.predict(Position(1, 0), TextDocument("u", "Roses are red\n"))
        finally:
            await handle.close()

    candidates = asyncio.run(scenario())

    assert [c.label for c in candidates] == ["sugar"]
    assert "rhymes with" not in oracle.prompts[0]
    assert any("prompting without phonetic context" in r.message for r in caplog.records)

import asyncio

from verse_engine.analysis.diagnostics import Position
from verse_engine.app.settings import DocumentSettings
from verse_engine.core.document import TextDocument
from verse_engine.prediction.base import (
    CompletionCandidate,
    CompletionKind,
    CursorContext,
    resolve_completion,
)
from verse_engine.prediction.dictionary import DictionaryPredictor


def _predict(store_handle, text, position):
    async def scenario():
        try:
            predictor = await DictionaryPredictor.create(DocumentSettings(), store_handle)
            return await predictor.predict(position, TextDocument("file:///p.poem", text))
        finally:
            await store_handle.close()

    return asyncio.run(scenario())


def test_suggests_rhymes_for_previous_line_endings(store_handle):
    candidates = _predict(store_handle, "A light\nA night\nA sight\n", Position(3, 0))
    labels = [candidate.label for candidate in candidates]

    assert labels[:5] == ["flight", "night", "sight", "bright", "sweet"]
    assert len(labels) == 15
    assert [candidate.data for candidate in candidates] == list(range(15))
    assert all(candidate.kind is CompletionKind.TEXT for candidate in candidates)


def test_only_three_previous_lines_are_considered(store_handle):
    text = "the blue\nroses are red\nthe light\nis sweet\n"
    labels = [c.label for c in _predict(store_handle, text, Position(4, 0))]

    assert "true" not in labels
    assert labels[:2] == ["bed", "head"]


def test_first_line_has_no_suggestions(store_handle):
    assert _predict(store_handle, "Roses are red", Position(0, 5)) == []


def test_cursor_context_captures_prefix_and_endings():
    document = TextDocument("u", "Roses are red\nViolets are blue\nSugar is")
    context = CursorContext.capture(Position(2, 5), document)

    assert context.prefix == "Sugar"
    assert context.suffix == " is"
    assert context.recent_line_endings() == ["red", "blue"]
    assert context.preceding_lines(1) == ["Violets are blue"]
    assert context.following_text() == " is"


def test_resolve_completion_fills_detail():
    candidate = CompletionCandidate(label="night")
    resolved = resolve_completion(candidate)

    assert resolved.label == "night"
    assert resolved.detail == "Verse suggestion"
    assert "night" in resolved.documentation

import asyncio

from conftest import CountingSource
from verse_engine.analysis.diagnostics import Diagnostic, DiagnosticSeverity, Range
from verse_engine.app.app import PLAYGROUND_URI, VerseApp, _should_share_interface
from verse_engine.app.ui.gradio import format_completions, format_diagnostics, format_rhymes
from verse_engine.prediction.base import as_candidates


def _app(tmp_path):
    return VerseApp(tmp_path / "app.db", source=CountingSource())


def test_app_analyzes_and_finds_rhymes(tmp_path):
    app = _app(tmp_path)

    async def scenario():
        try:
            diagnostics = await app.analyze_text("Roses are red\nViolets are blue")
            rhymes = await app.find_rhymes("light", 3)
            pronunciation = await app.describe_word("blue")
            unknown = await app.describe_word("zyzzyva")
            suggestions = await app.complete_text("Roses are red\n", 1, 0)
        finally:
            await app.close()
        return diagnostics, rhymes, pronunciation, unknown, suggestions

    diagnostics, rhymes, pronunciation, unknown, suggestions = asyncio.run(scenario())

    assert [d.range.start.line for d in diagnostics] == [1]
    assert rhymes == ["FLIGHT", "NIGHT", "SIGHT"]
    assert pronunciation == "B L UW1"
    assert unknown is None
    assert [c.label for c in suggestions] == ["bed", "head"]
    assert app.document.uri == PLAYGROUND_URI


def test_playground_document_version_tracks_edits(tmp_path):
    app = _app(tmp_path)

    async def scenario():
        try:
            await app.analyze_text("red")
            await app.analyze_text("red")
            version = app.document.version
            await app.analyze_text("blue")
        finally:
            await app.close()
        return version

    version = asyncio.run(scenario())

    assert version == 1
    assert app.document.version == 2


def test_share_flag_reads_environment(monkeypatch):
    monkeypatch.delenv("VERSE_SHARE", raising=False)
    assert _should_share_interface() is False

    monkeypatch.setenv("VERSE_SHARE", "Yes")
    assert _should_share_interface() is True

    monkeypatch.setenv("VERSE_SHARE", "0")
    assert _should_share_interface() is False


def test_result_formatting():
    diagnostic = Diagnostic(DiagnosticSeverity.HINT, Range.on_line(1, 12, 16), "Line ends with a stressed syllable.")

    assert format_diagnostics([]) == "_No problems found._"
    assert "- line 2, columns 13-16: **hint** Line ends with a stressed syllable." in format_diagnostics(
        [diagnostic]
    )
    assert format_completions(as_candidates(["bed", "head"])) == "- bed\n- head"
    assert format_rhymes("Blue", "B L UW1", ["TRUE"]) == "**blue** /B L UW1/\n\ntrue"
    assert "No pronunciation" in format_rhymes("zyzzyva", None, [])

"""User interface assembly for the Gradio playground."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Sequence

import gradio as gr

from ...analysis.diagnostics import Diagnostic, DiagnosticSeverity
from ...errors import VerseError
from ...prediction.base import CompletionCandidate

if TYPE_CHECKING:
    from ..app import VerseApp


def format_diagnostics(diagnostics: Sequence[Diagnostic]) -> str:
    if not diagnostics:
        return "_No problems found._"
    output: List[str] = [f"#### {len(diagnostics)} problem(s)"]
    for diagnostic in diagnostics:
        start = diagnostic.range.start
        end = diagnostic.range.end
        severity = DiagnosticSeverity(diagnostic.severity).name.lower()
        output.append(
            f"- line {start.line + 1}, columns {start.character + 1}-{end.character}: "
            f"**{severity}** {diagnostic.message}"
        )
    return "\n".join(output)


def format_completions(candidates: Sequence[CompletionCandidate]) -> str:
    if not candidates:
        return "_No suggestions._"
    return "\n".join(f"- {candidate.label}" for candidate in candidates)


def format_rhymes(word: str, pronunciation: str | None, rhymes: Sequence[str]) -> str:
    if pronunciation is None:
        return f"_No pronunciation known for **{word}**._"
    output = [f"**{word.lower()}** /{pronunciation}/", ""]
    if rhymes:
        output.append(", ".join(rhyme.lower() for rhyme in rhymes))
    else:
        output.append("_No rhymes found._")
    return "\n".join(output)


def _format_telemetry(snapshot: Dict[str, Any]) -> str:
    timings = snapshot.get("timings") or {}
    if not timings:
        return ""
    chunks = [
        f"`{name}` {float(entry.get('total', 0.0)) * 1000:.1f}ms"
        for name, entry in timings.items()
    ]
    return "Timings: " + ", ".join(chunks)


def create_interface(app: "VerseApp") -> gr.Blocks:
    """Construct the interactive Gradio Blocks UI."""

    async def analyze_interface(text: str):
        if not text or not text.strip():
            return "Paste a poem to analyse its line endings.", ""
        try:
            diagnostics = await app.analyze_text(text)
        except VerseError as exc:
            return f"**Error:** {exc}", ""
        return format_diagnostics(diagnostics), _format_telemetry(app.telemetry.snapshot())

    async def complete_interface(text: str, line: float, character: float):
        try:
            candidates = await app.complete_text(text or "", int(line) - 1, int(character))
        except VerseError as exc:
            return f"**Error:** {exc}"
        return format_completions(candidates)

    async def rhyme_interface(word: str, limit: float):
        word = (word or "").strip()
        if not word:
            return "Please enter a word to find rhymes for."
        try:
            pronunciation = await app.describe_word(word)
            rhymes = await app.find_rhymes(word, int(limit)) if pronunciation else []
        except VerseError as exc:
            return f"**Error:** {exc}"
        return format_rhymes(word, pronunciation, rhymes)

    with gr.Blocks(title="Verse Engine", theme=gr.themes.Soft()) as interface:
        gr.Markdown(
            "<h2>Verse Engine</h2>\n"
            "<p>Stress analysis, rhymes, and completions for poems in progress.</p>"
        )

        with gr.Tabs():
            with gr.Tab("Poem analysis"):
                with gr.Row():
                    with gr.Column(scale=2):
                        poem_input = gr.Textbox(
                            label="Poem",
                            placeholder="Roses are red,\nViolets are blue,",
                            lines=12,
                        )
                        analyze_btn = gr.Button("Analyse", variant="primary")
                        with gr.Accordion("Suggest a continuation", open=False):
                            with gr.Row():
                                line_input = gr.Number(value=1, precision=0, label="Line")
                                character_input = gr.Number(value=0, precision=0, label="Column")
                            complete_btn = gr.Button("Suggest")
                    with gr.Column(scale=1):
                        diagnostics_md = gr.Markdown(value="_Results will appear here._")
                        timings_md = gr.Markdown(value="")
                        completions_md = gr.Markdown(value="")

            with gr.Tab("Rhyme lookup"):
                with gr.Row():
                    with gr.Column(scale=1):
                        word_input = gr.Textbox(
                            label="Word",
                            placeholder="Enter a word (e.g., light, ocean, desire)",
                            lines=1,
                        )
                        limit_input = gr.Slider(
                            minimum=1,
                            maximum=50,
                            value=10,
                            step=1,
                            label="Max Results",
                        )
                        rhyme_btn = gr.Button("Find Rhymes", variant="primary")
                    with gr.Column(scale=2):
                        rhymes_md = gr.Markdown(value="_Enter a word to begin._")

        analyze_btn.click(
            fn=analyze_interface,
            inputs=[poem_input],
            outputs=[diagnostics_md, timings_md],
        )
        complete_btn.click(
            fn=complete_interface,
            inputs=[poem_input, line_input, character_input],
            outputs=[completions_md],
        )
        rhyme_btn.click(
            fn=rhyme_interface,
            inputs=[word_input, limit_input],
            outputs=[rhymes_md],
        )
        word_input.submit(
            fn=rhyme_interface,
            inputs=[word_input, limit_input],
            outputs=[rhymes_md],
        )

    return interface


__all__ = ["create_interface", "format_completions", "format_diagnostics", "format_rhymes"]

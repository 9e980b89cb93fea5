"""Application wiring for the verse engine playground."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from ..analysis.diagnostics import Diagnostic, Position
from ..core.document import TextDocument
from ..core.pronunciation_store import DEFAULT_DB_PATH, PronunciationStoreHandle
from ..core.rhymes import DEFAULT_RHYME_LIMIT, RhymeMatcher
from ..core.sources import PronunciationSource, default_source
from ..prediction.base import CompletionCandidate
from ..utils.logging_config import configure_logging
from ..utils.observability import get_logger
from ..utils.telemetry import StructuredTelemetry, TelemetryLogger
from .service import VerseService
from .settings import DocumentSettings, DocumentSettingsStore
from .ui.gradio import create_interface

PLAYGROUND_URI = "playground://poem"


class VerseApp:
    """High-level application facade bundling dependencies."""

    def __init__(
        self,
        db_path: Path | str = DEFAULT_DB_PATH,
        *,
        source: Optional[PronunciationSource] = None,
        store_handle: Optional[PronunciationStoreHandle] = None,
        settings: Optional[DocumentSettings] = None,
        service: Optional[VerseService] = None,
        telemetry: Optional[StructuredTelemetry] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self._logger = get_logger(__name__).bind(component="app_facade")
        self._logger.info("Initialising application facade", context={"db_path": str(self.db_path)})

        self.telemetry = telemetry or StructuredTelemetry()
        self.store_handle = store_handle or PronunciationStoreHandle(
            source or default_source(), self.db_path
        )
        self.service = service or VerseService(
            self.store_handle,
            settings_store=DocumentSettingsStore(defaults=settings),
            telemetry=self.telemetry,
        )
        self.document = TextDocument(PLAYGROUND_URI)

        self._logger.info(
            "Application dependencies wired",
            context={
                "source": self.store_handle.source.name,
                "predictor": self.service.settings_store.defaults.predictor_type,
            },
        )

    # Public API ------------------------------------------------------------
    def _sync(self, text: str) -> TextDocument:
        if text != self.document.get_text():
            self.document.update(text)
        return self.document

    async def analyze_text(self, text: str) -> List[Diagnostic]:
        return await self.service.analyze(self._sync(text))

    async def complete_text(
        self,
        text: str,
        line: int,
        character: int,
        *,
        timeout: Optional[float] = None,
    ) -> List[CompletionCandidate]:
        return await self.service.complete(
            self._sync(text), Position(line, character), timeout=timeout
        )

    async def find_rhymes(self, word: str, limit: int = DEFAULT_RHYME_LIMIT) -> List[str]:
        store = await self.store_handle.get()
        return await RhymeMatcher(store).rhymes_for(word, limit)

    async def describe_word(self, word: str) -> Optional[str]:
        store = await self.store_handle.get()
        record = await store.lookup(word)
        if record is None:
            return None
        return record.phonemes_with_stress

    def create_gradio_interface(self):
        return create_interface(self)

    async def close(self) -> None:
        await self.service.shutdown()


def _should_share_interface() -> bool:
    """Return whether the Gradio UI should request a public share link."""

    env_value = os.environ.get("VERSE_SHARE", "")
    if not env_value:
        return False
    normalized = str(env_value).strip().lower()
    return normalized in {"1", "true", "yes", "on"}


def main() -> None:
    configure_logging()
    telemetry = StructuredTelemetry()
    telemetry.add_listener(TelemetryLogger())
    app = VerseApp(telemetry=telemetry)
    interface = app.create_gradio_interface()
    interface.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=_should_share_interface(),
    )


__all__ = ["PLAYGROUND_URI", "VerseApp", "main"]

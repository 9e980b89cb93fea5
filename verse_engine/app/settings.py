"""Per-document configuration."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ..errors import ConfigurationError
from ..utils.observability import get_logger

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_PREDICTOR = "cmudict"


class CachingStrategy(str, Enum):
    EAGER = "eager"
    LAZY = "lazy"


def _env_api_key() -> Optional[str]:
    return os.environ.get("GEMINI_API_KEY") or None


@dataclass(frozen=True)
class DocumentSettings:
    show_all_errors: bool = False
    max_number_of_problems: int = 1000
    caching: CachingStrategy = CachingStrategy.EAGER
    predictor_type: str = DEFAULT_PREDICTOR
    gemini_api_key: Optional[str] = field(default_factory=_env_api_key, repr=False)
    gemini_model: str = DEFAULT_GEMINI_MODEL
    include_rhyme_hints: bool = True
    include_prosody: bool = True

    @classmethod
    def from_mapping(
        cls,
        values: Optional[Mapping[str, Any]],
        *,
        base: Optional["DocumentSettings"] = None,
    ) -> "DocumentSettings":
        """Build settings from the editor's camelCase configuration section.

        Keys that are absent keep the value from ``base`` (or the defaults).
        """

        settings = base or cls()
        if not values:
            return settings

        updates: Dict[str, Any] = {}
        if "showAllErrors" in values:
            updates["show_all_errors"] = bool(values["showAllErrors"])
        if "maxNumberOfProblems" in values:
            try:
                cap = int(values["maxNumberOfProblems"])
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"maxNumberOfProblems must be an integer, got {values['maxNumberOfProblems']!r}"
                ) from exc
            if cap < 0:
                raise ConfigurationError("maxNumberOfProblems must not be negative")
            updates["max_number_of_problems"] = cap
        if "caching" in values:
            try:
                updates["caching"] = CachingStrategy(str(values["caching"]).strip().lower())
            except ValueError as exc:
                raise ConfigurationError(
                    f"Unknown caching strategy {values['caching']!r}"
                ) from exc
        if "predictorType" in values:
            updates["predictor_type"] = str(values["predictorType"]).strip().lower()
        if values.get("geminiApiKey"):
            updates["gemini_api_key"] = str(values["geminiApiKey"])
        if values.get("geminiModel"):
            updates["gemini_model"] = str(values["geminiModel"])
        if "includeRhymeHints" in values:
            updates["include_rhyme_hints"] = bool(values["includeRhymeHints"])
        if "includeProsody" in values:
            updates["include_prosody"] = bool(values["includeProsody"])
        return replace(settings, **updates)


SettingsResolver = Callable[[str], Awaitable[Optional[Mapping[str, Any]]]]


class DocumentSettingsStore:
    """Caches resolved settings per document uri.

    ``resolver`` fetches the configuration section for a uri from the host
    editor. Without one every document uses ``defaults``.
    """

    def __init__(
        self,
        resolver: Optional[SettingsResolver] = None,
        defaults: Optional[DocumentSettings] = None,
    ) -> None:
        self.resolver = resolver
        self.defaults = defaults or DocumentSettings()
        self._settings: Dict[str, asyncio.Future] = {}
        self._logger = get_logger(__name__).bind(component="document_settings")

    async def _resolve(self, uri: str) -> DocumentSettings:
        values = await self.resolver(uri) if self.resolver is not None else None
        return DocumentSettings.from_mapping(values, base=self.defaults)

    async def get(self, uri: str) -> DocumentSettings:
        if self.resolver is None:
            return self.defaults
        pending = self._settings.get(uri)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(uri))
            self._settings[uri] = pending
        try:
            return await asyncio.shield(pending)
        except Exception:
            if self._settings.get(uri) is pending:
                del self._settings[uri]
            raise

    def invalidate(self, uri: str) -> None:
        self._settings.pop(uri, None)

    def clear(self) -> None:
        self._logger.debug("Clearing cached document settings", context={"documents": len(self._settings)})
        self._settings.clear()

    def __contains__(self, uri: str) -> bool:
        return uri in self._settings


__all__ = [
    "CachingStrategy",
    "DEFAULT_GEMINI_MODEL",
    "DEFAULT_PREDICTOR",
    "DocumentSettings",
    "DocumentSettingsStore",
    "SettingsResolver",
]

"""Selects and caches the completion strategy named by the settings."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional, Type

from ..app.settings import DocumentSettings
from ..core.pronunciation_store import PronunciationStoreHandle
from ..errors import ConfigurationError
from ..utils.observability import create_counter, get_logger
from .base import VersePredictor
from .dictionary import DictionaryPredictor
from .generative import GenerativePredictor

PREDICTORS: Dict[str, Type[VersePredictor]] = {
    "cmudict": DictionaryPredictor,
    "gemini": GenerativePredictor,
}

_PREDICTOR_BUILDS = create_counter(
    "verse_predictor_builds_total",
    "Completion strategies constructed, by type.",
    label_names=("predictor",),
)


class VersePredictorFactory:
    """Holds one cached predictor and the type it was built for.

    Replacing the cached predictor never touches the old instance, so a
    ``predict`` call already running against it finishes normally.
    """

    def __init__(
        self,
        store_handle: PronunciationStoreHandle,
        predictors: Optional[Dict[str, Type[VersePredictor]]] = None,
    ) -> None:
        self.store_handle = store_handle
        self.predictors = dict(predictors if predictors is not None else PREDICTORS)
        self._cached: Optional[VersePredictor] = None
        self._cached_type: Optional[str] = None
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__).bind(component="predictor_factory")

    @property
    def cached_type(self) -> Optional[str]:
        return self._cached_type

    def invalidate(self) -> None:
        """Forget the cached predictor; the next ``get`` builds a fresh one."""

        self._cached = None
        self._cached_type = None

    async def get(self, settings: DocumentSettings) -> VersePredictor:
        predictor_type = settings.predictor_type
        if self._cached is not None and self._cached_type == predictor_type:
            return self._cached

        predictor_cls = self.predictors.get(predictor_type)
        if predictor_cls is None:
            raise ConfigurationError(
                f"Invalid predictor type {predictor_type!r}; "
                f"expected one of {sorted(self.predictors)}"
            )

        async with self._lock:
            # Another caller may have built it while we waited.
            if self._cached is not None and self._cached_type == predictor_type:
                return self._cached
            self._logger.info(
                "Creating predictor",
                context={"predictor": predictor_type, "previous": self._cached_type},
            )
            predictor = await predictor_cls.create(settings, self.store_handle)
            _PREDICTOR_BUILDS.labels(predictor=predictor_type).inc()
            self._cached = predictor
            self._cached_type = predictor_type
            return predictor


__all__ = ["PREDICTORS", "VersePredictorFactory"]

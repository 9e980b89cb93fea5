"""Runs every registered diagnostic strategy over a parsed poem."""

from __future__ import annotations

from typing import Iterable, List, Optional

from ..core.tokenizer import ParsedPoem
from ..utils.observability import create_counter, get_logger, start_span
from ..utils.telemetry import StructuredTelemetry
from .diagnostics import Diagnostic, has_valid_range
from .strategies import AnalysisStrategy, default_strategies

_DIAGNOSTICS_EMITTED = create_counter(
    "verse_diagnostics_total",
    "Diagnostics produced, by strategy.",
    label_names=("strategy",),
)
_DIAGNOSTICS_DROPPED = create_counter(
    "verse_diagnostics_dropped_total",
    "Diagnostics discarded because of a malformed range.",
)


class AnalysisEngine:
    def __init__(
        self,
        strategies: Optional[Iterable[AnalysisStrategy]] = None,
        *,
        telemetry: Optional[StructuredTelemetry] = None,
    ) -> None:
        self.strategies: List[AnalysisStrategy] = (
            list(strategies) if strategies is not None else default_strategies()
        )
        self.telemetry = telemetry or StructuredTelemetry()
        self._logger = get_logger(__name__).bind(component="analysis_engine")

    def register(self, strategy: AnalysisStrategy) -> None:
        self.strategies.append(strategy)

    def analyze(self, poem: ParsedPoem) -> List[Diagnostic]:
        """Merge every strategy's output and drop malformed ranges."""

        self.telemetry.start_trace("analysis")
        collected: List[Diagnostic] = []
        with start_span("analysis.analyze", {"lines": len(poem)}):
            for strategy in self.strategies:
                with self.telemetry.timer(f"strategy.{strategy.name}") as details:
                    produced = strategy.produce(poem)
                    details["diagnostics"] = len(produced)
                _DIAGNOSTICS_EMITTED.labels(strategy=strategy.name).inc(len(produced))
                collected.extend(produced)

        valid = [diagnostic for diagnostic in collected if has_valid_range(diagnostic)]
        dropped = len(collected) - len(valid)
        if dropped:
            _DIAGNOSTICS_DROPPED.inc(dropped)
            self._logger.debug(
                "Dropped diagnostics with invalid ranges",
                context={"dropped": dropped},
            )
        self.telemetry.annotate("diagnostics", len(valid))
        return valid


__all__ = ["AnalysisEngine"]

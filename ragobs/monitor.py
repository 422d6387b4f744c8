"""RAG monitor: validated query logging, windowed statistics and baselines."""

import logging
from datetime import datetime
from math import isnan
from numbers import Real
from typing import Optional

from .adapters.memory import InMemoryQueryStore
from .analytics import compute_baseline, compute_statistics
from .errors import ValidationError
from .models import ControlLimits, QueryEvent, RAGBaseline, RAGStatistics, TimeWindow
from .ports import QueryStore

logger = logging.getLogger(__name__)


class RAGMonitor:
    """Tracks RAG behaviour over populations of queries."""

    def __init__(
        self,
        query_store: Optional[QueryStore] = None,
        default_control_limits: Optional[ControlLimits] = None,
    ):
        self.query_store = query_store if query_store is not None else InMemoryQueryStore()
        self.default_control_limits = default_control_limits or ControlLimits()
        self._baseline: Optional[RAGBaseline] = None

    async def log_query(self, event: QueryEvent) -> None:
        try:
            validate_query_event(event)
        except ValidationError as exc:
            logger.warning("Rejected query event %r: %s", event.id, exc)
            raise
        await self.query_store.store(event)

    async def get_statistics(self, window: TimeWindow) -> RAGStatistics:
        events = await self.query_store.get_events_in_window(window)
        return compute_statistics(events, window)

    async def get_baseline(self) -> RAGBaseline:
        """Current baseline, or a neutral one when none has been computed yet."""
        if self._baseline is None:
            return compute_baseline([], self.default_control_limits)
        return self._baseline

    async def update_baseline(self) -> RAGBaseline:
        """Recompute the baseline from every stored event."""
        events = await self.query_store.get_all()
        self._baseline = compute_baseline(events, self.default_control_limits, previous=self._baseline)
        logger.info(
            "Baseline updated from %s events: success_rate=%.3f relevance=%.3f latency_ms=%.1f",
            len(events),
            self._baseline.success_rate,
            self._baseline.avg_relevance_score,
            self._baseline.avg_latency_ms,
        )
        return self._baseline

    def set_baseline(self, baseline: RAGBaseline) -> None:
        """Restore a baseline, e.g. one loaded from persistence."""
        self._baseline = baseline


def validate_query_event(event: QueryEvent) -> None:
    """Raise ValidationError if any field is missing or out of range."""
    if not isinstance(event.id, str) or not event.id:
        raise ValidationError("QueryEvent must have a valid id")
    if not isinstance(event.timestamp, datetime):
        raise ValidationError("QueryEvent must have a valid timestamp")
    if not isinstance(event.query, str):
        raise ValidationError("QueryEvent must have a query string")
    if not isinstance(event.success, bool):
        raise ValidationError("QueryEvent must have a success boolean")
    _require_number_in_range("relevance_score", event.relevance_score, 0, 1)
    _require_number_in_range("confidence", event.confidence, 0, 1)
    _require_number_in_range("latency_ms", event.latency_ms, 0, None)
    _require_number_in_range("token_count", event.token_count, 0, None)


def _require_number_in_range(name: str, value, lower: float, upper: Optional[float]) -> None:
    if isinstance(value, bool) or not isinstance(value, Real) or isnan(value):
        raise ValidationError(f"QueryEvent.{name} must be a number")
    if value < lower or (upper is not None and value > upper):
        bound = f"between {lower} and {upper}" if upper is not None else f">= {lower}"
        raise ValidationError(f"QueryEvent.{name} must be {bound}, got {value}")

"""Pure analytics functions that reduce query events into RAG statistics."""

from datetime import datetime, timezone
from math import ceil, sqrt
from typing import Dict, Iterable, List, Optional

from .models import ControlLimits, ErrorType, QueryEvent, RAGBaseline, RAGStatistics, TimeWindow

ERROR_TYPES = tuple(error_type.value for error_type in ErrorType)


def compute_statistics(events: Iterable[QueryEvent], window: TimeWindow) -> RAGStatistics:
    """Compute rolling statistics for the events that fall inside ``window``.

    Both window bounds are inclusive. The function keeps no state, so the same
    input always yields the same output.
    """
    events_list = [event for event in events if window.start <= event.timestamp <= window.end]
    if not events_list:
        return empty_statistics(window)

    query_count = len(events_list)
    success_count = sum(1 for event in events_list if event.success)

    relevance_scores = [float(event.relevance_score) for event in events_list]
    latencies = [float(event.latency_ms) for event in events_list]

    return RAGStatistics(
        window=window,
        query_count=query_count,
        success_rate=success_count / query_count,
        avg_relevance_score=sum(relevance_scores) / query_count,
        avg_latency_ms=sum(latencies) / query_count,
        p95_latency_ms=compute_percentile(latencies, 95),
        error_breakdown=_error_breakdown(events_list),
    )


def empty_statistics(window: TimeWindow) -> RAGStatistics:
    """Return all-zero statistics for a window without events."""
    return RAGStatistics(
        window=window,
        query_count=0,
        success_rate=0.0,
        avg_relevance_score=0.0,
        avg_latency_ms=0.0,
        p95_latency_ms=0.0,
        error_breakdown=_empty_breakdown(),
    )


def compute_baseline(
    events: Iterable[QueryEvent],
    default_limits: ControlLimits,
    previous: Optional[RAGBaseline] = None,
    now: Optional[datetime] = None,
) -> RAGBaseline:
    """
    Derive a baseline and sigma-based control limits from historical events.

    Control limits sit ``default_limits.sigma`` population standard deviations
    below the success rate and relevance means, and above the latency mean.
    ``created_at`` is carried over from ``previous`` when one exists.
    """
    events_list = list(events)
    if now is None:
        now = datetime.now(timezone.utc)
    created_at = previous.created_at if previous is not None else now

    if not events_list:
        return RAGBaseline(
            created_at=created_at,
            updated_at=now,
            success_rate=1.0,
            avg_relevance_score=1.0,
            avg_latency_ms=0.0,
            control_limits=default_limits,
        )

    outcomes = [1.0 if event.success else 0.0 for event in events_list]
    relevance_scores = [float(event.relevance_score) for event in events_list]
    latencies = [float(event.latency_ms) for event in events_list]

    success_rate = _mean(outcomes)
    avg_relevance_score = _mean(relevance_scores)
    avg_latency_ms = _mean(latencies)
    sigma = default_limits.sigma

    return RAGBaseline(
        created_at=created_at,
        updated_at=now,
        success_rate=success_rate,
        avg_relevance_score=avg_relevance_score,
        avg_latency_ms=avg_latency_ms,
        control_limits=ControlLimits(
            success_rate_lower=max(0.0, success_rate - sigma * compute_std_dev(outcomes)),
            relevance_score_lower=max(0.0, avg_relevance_score - sigma * compute_std_dev(relevance_scores)),
            latency_upper=avg_latency_ms + sigma * compute_std_dev(latencies),
            sigma=sigma,
        ),
    )


def compute_percentile(values: Iterable[float], percentile: float) -> float:
    """Nearest-rank percentile: the sorted value at ``ceil(p/100 * n) - 1``."""
    sorted_values = sorted(float(value) for value in values)
    if not sorted_values:
        return 0.0
    index = ceil((percentile / 100) * len(sorted_values)) - 1
    return sorted_values[max(0, index)]


def compute_std_dev(values: Iterable[float]) -> float:
    """Population standard deviation; 0 for an empty input."""
    points = [float(value) for value in values]
    if not points:
        return 0.0
    mean = _mean(points)
    variance = sum((point - mean) ** 2 for point in points) / len(points)
    return sqrt(variance)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _empty_breakdown() -> Dict[str, int]:
    return {error_type: 0 for error_type in ERROR_TYPES}


def _error_breakdown(events: Iterable[QueryEvent]) -> Dict[str, int]:
    breakdown = _empty_breakdown()
    for event in events:
        if event.success:
            continue
        key = _normalize_error_type(event.error_type)
        breakdown[key] += 1
    return breakdown


def _normalize_error_type(error_type) -> str:
    if isinstance(error_type, ErrorType):
        return error_type.value
    if error_type in ERROR_TYPES:
        return error_type
    return ErrorType.UNKNOWN.value

"""Drift detection over RAG statistics using statistical process control."""

import logging
import threading
from datetime import datetime, timezone
from math import floor
from typing import List, Optional, Sequence
from uuid import uuid4

from .models import ControlLimits, DriftAlert, DriftMetric, DriftResult, RAGBaseline, RAGStatistics, Severity

logger = logging.getLogger(__name__)

NO_DRIFT_MESSAGE = "No significant drift detected"

METRIC_LABELS = {
    "successRate": "success rate",
    "relevanceScore": "retrieval relevance",
    "latency": "latency",
}

# Two-sided coverage of a normal distribution within +/- sigma.
SIGMA_CONFIDENCE = {
    1: 0.6827,
    2: 0.9545,
    3: 0.9973,
}
DEFAULT_CONFIDENCE = 0.95


def calculate_change_percent(baseline: float, current: float) -> float:
    """Relative change in percent; a zero baseline maps to 100 (or 0 if unchanged)."""
    if baseline == 0:
        return 0.0 if current == 0 else 100.0
    return (current - baseline) / baseline * 100


def compute_drift_metrics(
    statistics: RAGStatistics,
    baseline: RAGBaseline,
    limits: ControlLimits,
) -> List[DriftMetric]:
    """Evaluate the three monitored metrics against their control limits."""
    return [
        DriftMetric(
            name="successRate",
            baseline=baseline.success_rate,
            current=statistics.success_rate,
            change_percent=calculate_change_percent(baseline.success_rate, statistics.success_rate),
            control_limit=limits.success_rate_lower,
            breached=statistics.success_rate < limits.success_rate_lower,
        ),
        DriftMetric(
            name="relevanceScore",
            baseline=baseline.avg_relevance_score,
            current=statistics.avg_relevance_score,
            change_percent=calculate_change_percent(
                baseline.avg_relevance_score, statistics.avg_relevance_score
            ),
            control_limit=limits.relevance_score_lower,
            breached=statistics.avg_relevance_score < limits.relevance_score_lower,
        ),
        DriftMetric(
            name="latency",
            baseline=baseline.avg_latency_ms,
            current=statistics.avg_latency_ms,
            change_percent=calculate_change_percent(baseline.avg_latency_ms, statistics.avg_latency_ms),
            control_limit=limits.latency_upper,
            breached=statistics.avg_latency_ms > limits.latency_upper,
        ),
    ]


def determine_severity(metrics: Sequence[DriftMetric]) -> Severity:
    """Grade drift by breach count and mean absolute change of breached metrics."""
    breached = [metric for metric in metrics if metric.breached]
    if not breached:
        return Severity.LOW

    avg_magnitude = sum(abs(metric.change_percent) for metric in breached) / len(breached)

    if len(breached) >= 3 or avg_magnitude > 50:
        return Severity.CRITICAL
    if len(breached) >= 2 or avg_magnitude > 30:
        return Severity.HIGH
    if avg_magnitude > 15:
        return Severity.MEDIUM
    return Severity.LOW


def confidence_for_sigma(sigma: float) -> float:
    return SIGMA_CONFIDENCE.get(_round_half_up(sigma), DEFAULT_CONFIDENCE)


def build_drift_message(metrics: Sequence[DriftMetric], window_hours: Optional[int] = None) -> str:
    """
    Describe breached metrics in one line.

    Example: "success rate dropped 10.5%, latency increased 40.0% over 24 hours"
    """
    breached = [metric for metric in metrics if metric.breached]
    if not breached:
        return NO_DRIFT_MESSAGE

    descriptions = []
    for metric in breached:
        direction = "increased" if metric.change_percent > 0 else "dropped"
        label = METRIC_LABELS.get(metric.name, metric.name)
        descriptions.append(f"{label} {direction} {abs(metric.change_percent):.1f}%")

    time_frame = f"over {window_hours} hours" if window_hours else "recently"
    return f"{', '.join(descriptions)} {time_frame}"


def evaluate_drift(
    statistics: RAGStatistics,
    baseline: RAGBaseline,
    default_limits: ControlLimits,
) -> DriftResult:
    """Pure drift evaluation; limits come from the baseline when it carries them."""
    limits = baseline.control_limits or default_limits
    metrics = compute_drift_metrics(statistics, baseline, limits)

    window_hours = None
    if statistics.window is not None:
        window_hours = _round_half_up(statistics.window.duration_hours)

    return DriftResult(
        has_drift=any(metric.breached for metric in metrics),
        metrics=tuple(metrics),
        severity=determine_severity(metrics),
        confidence_interval=confidence_for_sigma(limits.sigma),
        message=build_drift_message(metrics, window_hours),
    )


class DriftDetector:
    """Checks statistics against baselines and keeps the resulting alerts.

    Alerts are append-only; the only mutation allowed afterwards is flipping
    ``acknowledged`` to True. All alert access goes through one lock so that
    concurrent checks and acknowledgments cannot interleave.
    """

    def __init__(self, control_limits: Optional[ControlLimits] = None):
        self._control_limits = control_limits or ControlLimits()
        self._alerts: List[DriftAlert] = []
        self._lock = threading.Lock()

    def check_for_drift(self, statistics: RAGStatistics, baseline: RAGBaseline) -> DriftResult:
        result = evaluate_drift(statistics, baseline, self._control_limits)

        if result.has_drift:
            alert = DriftAlert(
                id=f"alert-{uuid4()}",
                timestamp=datetime.now(timezone.utc),
                result=result,
                acknowledged=False,
            )
            with self._lock:
                self._alerts.append(alert)
            logger.info("Drift alert %s raised (%s): %s", alert.id, result.severity.value, result.message)
        else:
            logger.debug("Drift check passed for %s queries", statistics.query_count)

        return result

    def set_control_limits(self, control_limits: ControlLimits) -> None:
        """Replace the limits used for baselines that carry none of their own."""
        self._control_limits = control_limits

    def get_control_limits(self) -> ControlLimits:
        return self._control_limits

    def get_active_alerts(self) -> List[DriftAlert]:
        with self._lock:
            return [alert for alert in self._alerts if not alert.acknowledged]

    def get_all_alerts(self) -> List[DriftAlert]:
        with self._lock:
            return list(self._alerts)

    def acknowledge_alert(self, alert_id: str) -> bool:
        """Mark an alert acknowledged. Returns False for an unknown id."""
        with self._lock:
            for alert in self._alerts:
                if alert.id == alert_id:
                    alert.acknowledged = True
                    return True
        logger.warning("Cannot acknowledge unknown drift alert %s", alert_id)
        return False

    def clear_alerts(self) -> None:
        with self._lock:
            self._alerts = []


def _round_half_up(value: float) -> int:
    return int(floor(value + 0.5))

"""Application service orchestrating repositories, pure analytics and drift checks."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from .analytics import compute_statistics
from .drift import DriftDetector
from .models import DriftResult, Granularity, RAGBaseline, RAGStatistics, TimeWindow
from .ports import QueryEventRepository


class AnalyticsService:
    """Period-based statistics and drift checks over a query-event repository."""

    def __init__(self, repo: QueryEventRepository, drift_detector: Optional[DriftDetector] = None):
        self.repo = repo
        self.drift_detector = drift_detector or DriftDetector()

    def get_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        granularity: Granularity = Granularity.HOUR,
    ) -> RAGStatistics:
        start, end = _normalize_period(start_date, end_date)
        events = self.repo.fetch_query_events(start, end)
        return compute_statistics(events, TimeWindow(start=start, end=end, granularity=granularity))

    def check_drift(
        self,
        baseline: RAGBaseline,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> DriftResult:
        statistics = self.get_statistics(start_date, end_date)
        return self.drift_detector.check_for_drift(statistics, baseline)


def _normalize_period(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> tuple[datetime, datetime]:
    if end_date is None:
        end_date = datetime.now(timezone.utc)
    if start_date is None:
        start_date = end_date - timedelta(days=7)
    return start_date, end_date

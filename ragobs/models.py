"""Core domain models used by the statistics, drift and knowledge-base engines."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from .errors import ConfigurationError, ValidationError


class ErrorType(str, Enum):
    """Failure classes tracked in error breakdowns and the knowledge base."""

    RETRIEVAL_FAILURE = "retrieval_failure"
    RELEVANCE_DEGRADATION = "relevance_degradation"
    GENERATION_ERROR = "generation_error"
    CONTEXT_OVERFLOW = "context_overflow"
    LATENCY_SPIKE = "latency_spike"
    EMBEDDING_ERROR = "embedding_error"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Granularity(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"


@dataclass(frozen=True)
class QueryEvent:
    """A single RAG query execution as observed by the monitor."""

    id: str
    timestamp: datetime
    query: str
    success: bool
    relevance_score: float
    confidence: float
    latency_ms: float
    token_count: int
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    retrieved_documents: Sequence[str] = ()
    generation_output: str = ""


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime
    granularity: Granularity = Granularity.HOUR

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"TimeWindow start ({self.start.isoformat()}) must be before end ({self.end.isoformat()})"
            )

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


@dataclass(frozen=True)
class RAGStatistics:
    """Rolling metrics for one time window."""

    window: TimeWindow
    query_count: int
    success_rate: float
    avg_relevance_score: float
    avg_latency_ms: float
    p95_latency_ms: float
    error_breakdown: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": {
                "start": self.window.start.isoformat(),
                "end": self.window.end.isoformat(),
                "granularity": self.window.granularity.value,
            },
            "query_count": self.query_count,
            "success_rate": self.success_rate,
            "avg_relevance_score": self.avg_relevance_score,
            "avg_latency_ms": self.avg_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "error_breakdown": dict(self.error_breakdown),
        }


@dataclass(frozen=True)
class ControlLimits:
    """Statistical-process-control thresholds for the three monitored metrics."""

    success_rate_lower: float = 0.9
    relevance_score_lower: float = 0.7
    latency_upper: float = 5000.0
    sigma: float = 2.0

    def __post_init__(self):
        if not 0 <= self.success_rate_lower <= 1:
            raise ConfigurationError("success_rate_lower must be between 0 and 1")
        if not 0 <= self.relevance_score_lower <= 1:
            raise ConfigurationError("relevance_score_lower must be between 0 and 1")
        if self.latency_upper < 0:
            raise ConfigurationError("latency_upper must be non-negative")
        if self.sigma <= 0:
            raise ConfigurationError("sigma must be positive")


@dataclass(frozen=True)
class RAGBaseline:
    created_at: datetime
    updated_at: datetime
    success_rate: float
    avg_relevance_score: float
    avg_latency_ms: float
    control_limits: Optional[ControlLimits] = None


@dataclass(frozen=True)
class DriftMetric:
    name: str
    baseline: float
    current: float
    change_percent: float
    control_limit: float
    breached: bool


@dataclass(frozen=True)
class DriftResult:
    """Outcome of comparing one statistics snapshot with a baseline."""

    has_drift: bool
    metrics: Sequence[DriftMetric]
    severity: Severity
    confidence_interval: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_drift": self.has_drift,
            "metrics": [asdict(metric) for metric in self.metrics],
            "severity": self.severity.value,
            "confidence_interval": self.confidence_interval,
            "message": self.message,
        }


@dataclass
class DriftAlert:
    id: str
    timestamp: datetime
    result: DriftResult
    acknowledged: bool = False


@dataclass(frozen=True)
class Breadcrumb:
    timestamp: datetime
    category: str
    message: str
    data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class CodeChange:
    file_path: str
    old_content: str
    new_content: str
    description: str


@dataclass(frozen=True)
class ErrorContext:
    query: str
    retrieved_docs: Sequence[str] = ()
    breadcrumbs: Sequence[Breadcrumb] = ()
    generation_output: Optional[str] = None
    stack_trace: Optional[str] = None


@dataclass
class FixRecord:
    """A remediation linked to an error, with its historical success rate."""

    id: str
    error_id: str
    description: str
    code_changes: List[CodeChange]
    applied_at: datetime
    resolved: bool
    success_rate: float


@dataclass
class ErrorRecord:
    """A failing case stored in the knowledge base.

    ``embedding`` may be left empty; the knowledge base derives one from the
    record's text when it is stored.
    """

    id: str
    timestamp: datetime
    type: ErrorType
    component: str
    severity: Severity
    context: ErrorContext
    embedding: List[float] = field(default_factory=list)
    fixes: List[FixRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ErrorQuery:
    """Similarity and/or filter query over stored errors."""

    query_text: Optional[str] = None
    query_embedding: Optional[Sequence[float]] = None
    type: Optional[ErrorType] = None
    component: Optional[str] = None
    severity: Optional[Severity] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = None


@dataclass(frozen=True)
class SimilarError:
    error: ErrorRecord
    similarity: float
    fixes: Sequence[FixRecord]


@dataclass(frozen=True)
class FixSuggestion:
    id: str
    original_error: ErrorRecord
    suggested_fix: FixRecord
    confidence: float
    reasoning: str


@dataclass
class SuggestionRecord:
    """Bookkeeping for a suggestion until its outcome is recorded."""

    id: str
    fix_id: str
    error_id: str
    timestamp: datetime
    resolved: Optional[bool] = None


@dataclass(frozen=True)
class OutcomeStatistics:
    total: int
    resolved: int
    not_resolved: int
    pending: int
    resolution_rate: float


def create_error_record(
    timestamp: datetime,
    type: ErrorType,
    component: str,
    severity: Severity,
    context: ErrorContext,
    embedding: Optional[List[float]] = None,
    id: Optional[str] = None,
    fixes: Optional[List[FixRecord]] = None,
) -> ErrorRecord:
    """Build an ErrorRecord, generating an id when none is given."""
    return ErrorRecord(
        id=id or f"error-{uuid4()}",
        timestamp=timestamp,
        type=type,
        component=component,
        severity=severity,
        context=context,
        embedding=list(embedding) if embedding else [],
        fixes=list(fixes) if fixes else [],
    )


def create_fix_record(
    error_id: str,
    description: str,
    code_changes: List[CodeChange],
    applied_at: datetime,
    resolved: bool,
    success_rate: float,
    id: Optional[str] = None,
) -> FixRecord:
    """Build a FixRecord, generating an id when none is given."""
    return FixRecord(
        id=id or f"fix-{uuid4()}",
        error_id=error_id,
        description=description,
        code_changes=list(code_changes),
        applied_at=applied_at,
        resolved=resolved,
        success_rate=success_rate,
    )

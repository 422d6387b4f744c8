"""RagObs - statistics, drift detection and fix recall for RAG pipelines."""

from .analytics import compute_baseline, compute_percentile, compute_statistics, empty_statistics
from .drift import DriftDetector, evaluate_drift
from .errors import ConfigurationError, DimensionMismatchError, NotFoundError, RagObsError, ValidationError
from .knowledge_base import ErrorKnowledgeBase
from .monitor import RAGMonitor
from .ranker import FixRanker, FixRankerConfig
from .service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "RAGMonitor",
    "DriftDetector",
    "ErrorKnowledgeBase",
    "FixRanker",
    "FixRankerConfig",
    "compute_statistics",
    "compute_baseline",
    "compute_percentile",
    "empty_statistics",
    "evaluate_drift",
    "RagObsError",
    "ValidationError",
    "DimensionMismatchError",
    "NotFoundError",
    "ConfigurationError",
]

__version__ = "0.1.0"

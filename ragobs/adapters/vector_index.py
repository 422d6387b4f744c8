"""Vector index configuration and the in-memory cosine index."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..errors import ConfigurationError
from ..ports import MetadataValue, VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

SUPPORTED_METRICS = ("cosine", "euclidean", "dotproduct")


@dataclass(frozen=True)
class VectorIndexConfig:
    provider: str = "memory"
    index_name: str = "rag-observability-errors"
    dimension: int = 1536
    metric: str = "cosine"

    def __post_init__(self):
        if self.dimension <= 0:
            raise ConfigurationError("Vector index dimension must be positive")
        if self.metric not in SUPPORTED_METRICS:
            raise ConfigurationError(f"Unsupported vector metric '{self.metric}'")


class InMemoryVectorIndex:
    """Brute-force cosine search over records held in memory."""

    def __init__(self):
        self._records: Dict[str, VectorRecord] = {}
        self._lock = threading.Lock()

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record

    async def search(
        self,
        vector: Sequence[float],
        top_k: int,
        metadata_filter: Optional[Dict[str, MetadataValue]] = None,
    ) -> List[VectorSearchResult]:
        with self._lock:
            candidates = list(self._records.values())

        if metadata_filter:
            candidates = [record for record in candidates if _matches(record.metadata, metadata_filter)]

        scores = _cosine_scores(vector, candidates)
        results = [
            VectorSearchResult(id=record.id, score=score, metadata=record.metadata)
            for record, score in zip(candidates, scores)
        ]

        results.sort(key=lambda result: result.score, reverse=True)
        return results[:top_k]

    async def delete(self, ids: Sequence[str]) -> None:
        with self._lock:
            for record_id in ids:
                self._records.pop(record_id, None)

    async def fetch(self, ids: Sequence[str]) -> List[VectorRecord]:
        with self._lock:
            return [self._records[record_id] for record_id in ids if record_id in self._records]

    def size(self) -> int:
        with self._lock:
            return len(self._records)


def create_vector_index(config: VectorIndexConfig) -> InMemoryVectorIndex:
    """Build the vector index named by ``config.provider``.

    Only the in-memory provider ships with RagObs; hosted providers are
    injected by the caller as objects satisfying ``VectorIndex``.
    """
    if config.provider != "memory":
        raise ConfigurationError(
            f"Vector index provider '{config.provider}' is not built in; pass a VectorIndex instance instead"
        )
    if config.metric != "cosine":
        raise ConfigurationError("The in-memory vector index only supports the cosine metric")
    logger.debug("Creating in-memory vector index %s (dimension=%s)", config.index_name, config.dimension)
    return InMemoryVectorIndex()


def _matches(metadata: Dict[str, MetadataValue], metadata_filter: Dict[str, MetadataValue]) -> bool:
    return all(metadata.get(key) == value for key, value in metadata_filter.items())


def _cosine_scores(vector: Sequence[float], records: Sequence[VectorRecord]) -> List[float]:
    """Cosine similarity of ``vector`` against every record in one matrix product.

    Records whose length differs from the query, and zero vectors, score 0.
    """
    query = np.asarray(vector, dtype=float)
    scores = np.zeros(len(records))

    same_length = [index for index, record in enumerate(records) if len(record.values) == query.shape[0]]
    if not same_length:
        return scores.tolist()

    matrix = np.asarray([records[index].values for index in same_length], dtype=float)
    magnitudes = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        similarities = np.where(magnitudes == 0, 0.0, (matrix @ query) / magnitudes)
    scores[same_length] = similarities
    return scores.tolist()

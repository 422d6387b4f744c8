"""Port definitions for storage, vector search and embedding backends."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Union

from .models import ErrorQuery, ErrorRecord, QueryEvent, TimeWindow

MetadataValue = Union[str, int, float, bool]


@dataclass(frozen=True)
class VectorRecord:
    id: str
    values: Sequence[float]
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorSearchResult:
    id: str
    score: float
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)


class EmbeddingGenerator(Protocol):
    """Turns text into a fixed-length numeric vector."""

    dimension: int

    def generate(self, text: str) -> List[float]:
        """Return an embedding of exactly ``dimension`` values."""


class VectorIndex(Protocol):
    """Similarity index holding a derived copy of each error embedding."""

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        """Insert or replace records by id."""

    async def search(
        self,
        vector: Sequence[float],
        top_k: int,
        metadata_filter: Optional[Dict[str, MetadataValue]] = None,
    ) -> List[VectorSearchResult]:
        """Return up to ``top_k`` matches ordered by descending score."""

    async def delete(self, ids: Sequence[str]) -> None:
        """Remove records by id; unknown ids are ignored."""

    async def fetch(self, ids: Sequence[str]) -> List[VectorRecord]:
        """Return the records that exist among ``ids``."""


class ErrorStore(Protocol):
    """Authoritative storage for error records and their fixes."""

    async def store(self, error: ErrorRecord) -> None:
        """Persist a new error record."""

    async def get(self, error_id: str) -> Optional[ErrorRecord]:
        """Return the record or None."""

    async def get_all(self) -> List[ErrorRecord]:
        """Return every stored record."""

    async def exists(self, error_id: str) -> bool:
        """Return whether the id is stored."""

    async def update(self, error: ErrorRecord) -> None:
        """Replace an existing record; raise NotFoundError if absent."""

    async def query(self, filters: ErrorQuery) -> List[ErrorRecord]:
        """AND-filtered records, newest first, truncated to ``filters.limit``."""

    async def clear(self) -> None:
        """Remove all records."""


class QueryStore(Protocol):
    """Storage for logged query events."""

    async def store(self, event: QueryEvent) -> None:
        """Persist a query event."""

    async def get_events_in_window(self, window: TimeWindow) -> List[QueryEvent]:
        """Events with start <= timestamp <= end, oldest first."""

    async def get_by_id(self, event_id: str) -> Optional[QueryEvent]:
        """Return the event or None."""

    async def get_all(self) -> List[QueryEvent]:
        """Every stored event, oldest first."""

    async def clear(self) -> None:
        """Remove all events."""

    async def count(self) -> int:
        """Number of stored events."""


class QueryEventRepository(Protocol):
    """Read side of a persistent query log, e.g. a SQL table of past queries."""

    def fetch_query_events(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[QueryEvent]:
        """Return query events for a period."""

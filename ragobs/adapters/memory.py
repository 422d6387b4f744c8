"""In-memory reference stores for query events and error records."""

import threading
from typing import Dict, List, Optional

from ..errors import NotFoundError
from ..models import ErrorQuery, ErrorRecord, QueryEvent, TimeWindow


class InMemoryQueryStore:
    """Keeps query events in a dict keyed by id."""

    def __init__(self):
        self._events: Dict[str, QueryEvent] = {}
        self._lock = threading.Lock()

    async def store(self, event: QueryEvent) -> None:
        with self._lock:
            self._events[event.id] = event

    async def get_events_in_window(self, window: TimeWindow) -> List[QueryEvent]:
        with self._lock:
            events = [
                event for event in self._events.values() if window.start <= event.timestamp <= window.end
            ]
        return sorted(events, key=lambda event: event.timestamp)

    async def get_by_id(self, event_id: str) -> Optional[QueryEvent]:
        with self._lock:
            return self._events.get(event_id)

    async def get_all(self) -> List[QueryEvent]:
        with self._lock:
            events = list(self._events.values())
        return sorted(events, key=lambda event: event.timestamp)

    async def clear(self) -> None:
        with self._lock:
            self._events.clear()

    async def count(self) -> int:
        with self._lock:
            return len(self._events)


class InMemoryErrorStore:
    """Arena-style error store guarded by one store-wide lock."""

    def __init__(self):
        self._errors: Dict[str, ErrorRecord] = {}
        self._lock = threading.Lock()

    async def store(self, error: ErrorRecord) -> None:
        with self._lock:
            self._errors[error.id] = error

    async def get(self, error_id: str) -> Optional[ErrorRecord]:
        with self._lock:
            return self._errors.get(error_id)

    async def get_all(self) -> List[ErrorRecord]:
        with self._lock:
            return list(self._errors.values())

    async def exists(self, error_id: str) -> bool:
        with self._lock:
            return error_id in self._errors

    async def update(self, error: ErrorRecord) -> None:
        with self._lock:
            if error.id not in self._errors:
                raise NotFoundError("Error", error.id)
            self._errors[error.id] = error

    async def query(self, filters: ErrorQuery) -> List[ErrorRecord]:
        with self._lock:
            results = list(self._errors.values())

        if filters.type:
            results = [error for error in results if error.type == filters.type]
        if filters.component:
            results = [error for error in results if error.component == filters.component]
        if filters.severity:
            results = [error for error in results if error.severity == filters.severity]
        if filters.start_date:
            results = [error for error in results if error.timestamp >= filters.start_date]
        if filters.end_date:
            results = [error for error in results if error.timestamp <= filters.end_date]

        results.sort(key=lambda error: error.timestamp, reverse=True)

        if filters.limit and filters.limit > 0:
            results = results[: filters.limit]
        return results

    async def clear(self) -> None:
        with self._lock:
            self._errors.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._errors)

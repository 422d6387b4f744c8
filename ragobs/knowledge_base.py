"""Vector-indexed knowledge base of RAG errors and the fixes applied to them."""

import asyncio
import logging
from copy import deepcopy
from dataclasses import replace
from datetime import datetime
from math import floor, isfinite
from numbers import Real
from typing import List, Optional, Sequence

from .adapters.memory import InMemoryErrorStore
from .adapters.vector_index import InMemoryVectorIndex
from .embedding import CharacterCodeEmbeddingGenerator, build_error_embedding_text
from .errors import DimensionMismatchError, NotFoundError, ValidationError
from .models import ErrorQuery, ErrorRecord, ErrorType, FixRecord, Severity, SimilarError
from .ports import EmbeddingGenerator, ErrorStore, VectorIndex, VectorRecord

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_DIMENSION = 1536
DEFAULT_SEARCH_LIMIT = 10

# Prior used by the success-rate update when a fix has never succeeded.
NEUTRAL_SUCCESS_RATE = 0.5


class ErrorKnowledgeBase:
    """
    Stores errors with structured metadata and searchable embeddings.

    The error store is authoritative. The vector index only holds a derived
    copy of each embedding plus filterable metadata. Records and fixes are
    copied on the way in and on the way out, so stored state only changes
    through these methods. Read-modify-write sequences run under one lock.
    """

    def __init__(
        self,
        error_store: Optional[ErrorStore] = None,
        vector_index: Optional[VectorIndex] = None,
        embedding_generator: Optional[EmbeddingGenerator] = None,
        embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION,
    ):
        self.error_store = error_store if error_store is not None else InMemoryErrorStore()
        self.vector_index = vector_index if vector_index is not None else InMemoryVectorIndex()
        self.embedding_dimension = embedding_dimension
        self.embedding_generator = embedding_generator or CharacterCodeEmbeddingGenerator(embedding_dimension)
        self._lock = asyncio.Lock()

    async def store_error(self, error: ErrorRecord) -> str:
        """Validate, embed if needed, persist and index an error. Returns its id."""
        validate_error_record(error)
        for fix in error.fixes or []:
            validate_fix_record(fix)
            if fix.error_id != error.id:
                raise ValidationError(f"Fix '{fix.id}' references error '{fix.error_id}', not '{error.id}'")

        embedding = list(error.embedding or [])
        if not embedding:
            embedding = list(self.embedding_generator.generate(build_error_embedding_text(error)))
        validate_embedding(embedding, self.embedding_dimension)

        record = deepcopy(replace(error, embedding=embedding, fixes=list(error.fixes or [])))

        async with self._lock:
            await self.error_store.store(record)
            await self.vector_index.upsert(
                [
                    VectorRecord(
                        id=record.id,
                        values=record.embedding,
                        metadata={
                            "type": _enum_value(record.type),
                            "component": record.component,
                            "severity": _enum_value(record.severity),
                            "timestamp": record.timestamp.isoformat(),
                        },
                    )
                ]
            )

        logger.debug("Stored error %s (%s/%s)", record.id, _enum_value(record.type), record.component)
        return record.id

    async def link_fix(self, error_id: str, fix: FixRecord) -> None:
        """Attach a fix to an error, replacing any fix with the same id in place."""
        validate_fix_record(fix)
        if fix.error_id != error_id:
            raise ValidationError(f"Fix errorId '{fix.error_id}' does not match provided errorId '{error_id}'")

        async with self._lock:
            error = await self.error_store.get(error_id)
            if error is None:
                raise NotFoundError("Error", error_id)

            fixes = list(error.fixes)
            for index, existing in enumerate(fixes):
                if existing.id == fix.id:
                    fixes[index] = deepcopy(fix)
                    break
            else:
                fixes.append(deepcopy(fix))

            await self.error_store.update(replace(error, fixes=fixes))

        logger.debug("Linked fix %s to error %s", fix.id, error_id)

    async def search_similar(self, query: ErrorQuery) -> List[SimilarError]:
        """
        Find stored errors similar to the query embedding or text.

        Results keep the index's descending-similarity order. Twice the limit
        is fetched from the index so that date filtering can still fill it.
        """
        limit = query.limit or DEFAULT_SEARCH_LIMIT

        if query.query_embedding:
            query_embedding = list(query.query_embedding)
        elif query.query_text:
            query_embedding = self.embedding_generator.generate(query.query_text)
        else:
            return []

        metadata_filter = {}
        if query.type:
            metadata_filter["type"] = _enum_value(query.type)
        if query.component:
            metadata_filter["component"] = query.component
        if query.severity:
            metadata_filter["severity"] = _enum_value(query.severity)

        vector_results = await self.vector_index.search(
            query_embedding,
            limit * 2,
            metadata_filter or None,
        )

        results: List[SimilarError] = []
        for vector_result in vector_results:
            error = await self.error_store.get(vector_result.id)
            if error is None:
                continue
            if query.start_date and error.timestamp < query.start_date:
                continue
            if query.end_date and error.timestamp > query.end_date:
                continue

            error = deepcopy(error)
            results.append(SimilarError(error=error, similarity=vector_result.score, fixes=list(error.fixes)))
            if len(results) >= limit:
                break

        return results

    async def get_error(self, error_id: str) -> ErrorRecord:
        error = await self.error_store.get(error_id)
        if error is None:
            raise NotFoundError("Error", error_id)
        return deepcopy(error)

    async def update_fix_effectiveness(self, fix_id: str, resolved: bool) -> FixRecord:
        """
        Fold one more outcome into a fix's success rate.

        The current rate is read as ``successes / trials`` with
        ``trials = max(1, round(1 / rate))``; a rate of 0 uses a neutral 0.5
        prior. One trial is added, and one success when ``resolved``.
        """
        async with self._lock:
            for error in await self.error_store.get_all():
                for index, fix in enumerate(error.fixes):
                    if fix.id == fix_id:
                        updated = replace(
                            fix,
                            success_rate=updated_success_rate(fix.success_rate, resolved),
                            resolved=resolved,
                        )
                        fixes = list(error.fixes)
                        fixes[index] = updated
                        await self.error_store.update(replace(error, fixes=fixes))
                        logger.info(
                            "Fix %s outcome recorded (resolved=%s): success rate %.3f -> %.3f",
                            fix_id,
                            resolved,
                            fix.success_rate,
                            updated.success_rate,
                        )
                        return deepcopy(updated)

        raise NotFoundError("Fix", fix_id)

    async def query_errors(self, filters: ErrorQuery) -> List[ErrorRecord]:
        """AND-filter stored errors by type, component, severity and date range."""
        return [deepcopy(error) for error in await self.error_store.query(filters)]


def updated_success_rate(success_rate: float, resolved: bool) -> float:
    """
    Success rate after one more outcome, read from implied trial counts.

    A resolved outcome raises the rate and an unresolved one lowers it, with
    these exceptions:

    - a rate of 0 reads as the 0.5 prior, so an unresolved outcome moves it
      up to 1/3;
    - a rate of 1.0 stays at 1.0 when resolved;
    - a rate of 2/3 implies 2 trials and 1 success, so a resolved outcome
      leaves it at 2/3.
    """
    rate = success_rate or NEUTRAL_SUCCESS_RATE
    trials = max(1, _round_half_up(1 / rate))
    successes = _round_half_up(trials * rate)
    if resolved:
        successes += 1
    return successes / (trials + 1)


def validate_error_record(error: ErrorRecord) -> None:
    if not isinstance(error.id, str) or not error.id:
        raise ValidationError("ErrorRecord must have a valid id")
    if not isinstance(error.timestamp, datetime):
        raise ValidationError("ErrorRecord must have a valid timestamp")
    if not _is_member(error.type, ErrorType):
        raise ValidationError(f"ErrorRecord has invalid type {error.type!r}")
    if not isinstance(error.component, str) or not error.component:
        raise ValidationError("ErrorRecord must have a component")
    if not _is_member(error.severity, Severity):
        raise ValidationError(f"ErrorRecord has invalid severity {error.severity!r}")

    context = error.context
    if context is None:
        raise ValidationError("ErrorRecord must have a context")
    if not isinstance(context.query, str) or not context.query:
        raise ValidationError("ErrorRecord context must have a query")
    if not isinstance(context.retrieved_docs, (list, tuple)):
        raise ValidationError("ErrorRecord context must have a retrievedDocs sequence")
    if not isinstance(context.breadcrumbs, (list, tuple)):
        raise ValidationError("ErrorRecord context must have a breadcrumbs sequence")


def validate_embedding(embedding: Sequence[float], expected_dimension: int) -> None:
    """Embeddings are never truncated or padded; a wrong length is rejected."""
    if not isinstance(embedding, (list, tuple)):
        raise DimensionMismatchError(expected_dimension, None, "Embedding must be a sequence of numbers")
    if len(embedding) != expected_dimension:
        raise DimensionMismatchError(expected_dimension, len(embedding))
    for value in embedding:
        if isinstance(value, bool) or not isinstance(value, Real) or not isfinite(value):
            raise DimensionMismatchError(
                expected_dimension, len(embedding), "Embedding must contain only finite numbers"
            )


def validate_fix_record(fix: FixRecord) -> None:
    if not isinstance(fix.id, str) or not fix.id:
        raise ValidationError("FixRecord must have a valid id")
    if not isinstance(fix.error_id, str) or not fix.error_id:
        raise ValidationError("FixRecord must have a valid errorId")
    if not isinstance(fix.description, str) or not fix.description:
        raise ValidationError("FixRecord must have a description")
    if not isinstance(fix.code_changes, (list, tuple)):
        raise ValidationError("FixRecord must have a codeChanges sequence")
    if not isinstance(fix.applied_at, datetime):
        raise ValidationError("FixRecord must have a valid appliedAt date")
    if not isinstance(fix.resolved, bool):
        raise ValidationError("FixRecord must have a resolved boolean")
    rate = fix.success_rate
    if isinstance(rate, bool) or not isinstance(rate, Real) or not 0 <= rate <= 1:
        raise ValidationError("FixRecord successRate must be a number between 0 and 1")


def _is_member(value, enum_cls) -> bool:
    return isinstance(value, enum_cls) or value in {member.value for member in enum_cls}


def _enum_value(value) -> str:
    return getattr(value, "value", value)


def _round_half_up(value: float) -> int:
    return int(floor(value + 0.5))

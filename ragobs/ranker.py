"""Fix ranking: suggest past fixes for an error by relevance and track record."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Callable, Dict, List, NamedTuple, Optional
from uuid import uuid4

from .embedding import build_error_query_text
from .errors import ConfigurationError, NotFoundError
from .knowledge_base import ErrorKnowledgeBase
from .models import ErrorQuery, ErrorRecord, FixRecord, FixSuggestion, OutcomeStatistics, SuggestionRecord

logger = logging.getLogger(__name__)

# Scores closer than this are treated as equal and ordered by success rate.
SCORE_TIE_TOLERANCE = 0.001


@dataclass(frozen=True)
class FixRankerConfig:
    """
    Ranking options.

    Attributes:
        max_similar_errors: Similar errors fetched from the knowledge base.
        min_similarity_threshold: Similar errors scoring below this are ignored.
        similarity_weight: Weight of similarity in the blended score.
        success_rate_weight: Weight of a fix's historical success rate.
    """

    max_similar_errors: int = 10
    min_similarity_threshold: float = 0.3
    similarity_weight: float = 0.6
    success_rate_weight: float = 0.4

    def __post_init__(self):
        if self.max_similar_errors <= 0:
            raise ConfigurationError("max_similar_errors must be positive")
        if not -1 <= self.min_similarity_threshold <= 1:
            raise ConfigurationError("min_similarity_threshold must be between -1 and 1")
        if self.similarity_weight < 0 or self.success_rate_weight < 0:
            raise ConfigurationError("Ranking weights must be non-negative")
        if self.similarity_weight + self.success_rate_weight <= 0:
            raise ConfigurationError("Ranking weights must not both be zero")

    @property
    def normalized_weights(self) -> tuple:
        total = self.similarity_weight + self.success_rate_weight
        return self.similarity_weight / total, self.success_rate_weight / total


class RankedCandidate(NamedTuple):
    fix: FixRecord
    original_error: ErrorRecord
    similarity: float
    score: float


class FixRanker:
    """Queries the knowledge base for similar errors and ranks their fixes."""

    def __init__(
        self,
        knowledge_base: ErrorKnowledgeBase,
        config: Optional[FixRankerConfig] = None,
        on_novel_error_pattern: Optional[Callable[[ErrorRecord], None]] = None,
    ):
        self.knowledge_base = knowledge_base
        self.config = config or FixRankerConfig()
        self.similarity_weight, self.success_rate_weight = self.config.normalized_weights
        self.on_novel_error_pattern = on_novel_error_pattern
        self._suggestions: Dict[str, SuggestionRecord] = {}
        self._novel_error_patterns: List[ErrorRecord] = []

    async def suggest_fixes(self, error: ErrorRecord) -> List[FixSuggestion]:
        """
        Suggest fixes from similar past errors, best first.

        Returns an empty list, and records the error as a novel pattern, when
        no similar error above the threshold has any fix.
        """
        similar_errors = await self.knowledge_base.search_similar(
            ErrorQuery(
                query_text=build_error_query_text(error),
                query_embedding=error.embedding or None,
                type=error.type,
                limit=self.config.max_similar_errors,
            )
        )

        candidates = [
            (fix, similar.error, similar.similarity)
            for similar in similar_errors
            if similar.similarity >= self.config.min_similarity_threshold
            for fix in similar.fixes
        ]

        if not candidates:
            self._record_novel_error_pattern(error)
            return []

        suggestions = []
        now = datetime.now(timezone.utc)
        for candidate in self.rank(candidates):
            suggestion_id = f"suggestion-{uuid4()}"
            self._suggestions[suggestion_id] = SuggestionRecord(
                id=suggestion_id,
                fix_id=candidate.fix.id,
                error_id=error.id,
                timestamp=now,
            )
            suggestions.append(
                FixSuggestion(
                    id=suggestion_id,
                    original_error=candidate.original_error,
                    suggested_fix=candidate.fix,
                    confidence=candidate.score,
                    reasoning=build_reasoning(candidate),
                )
            )

        logger.debug("Suggested %s fixes for error %s", len(suggestions), error.id)
        return suggestions

    def rank(self, candidates) -> List[RankedCandidate]:
        """Score ``(fix, original_error, similarity)`` triples and sort them best first."""
        scored = [
            RankedCandidate(
                fix=fix,
                original_error=original_error,
                similarity=similarity,
                score=self.similarity_weight * similarity + self.success_rate_weight * fix.success_rate,
            )
            for fix, original_error, similarity in candidates
        ]

        return sorted(scored, key=cmp_to_key(_compare_candidates))

    async def record_outcome(self, suggestion_id: str, resolved: bool) -> None:
        """Record whether a suggested fix worked and feed it back into the knowledge base."""
        suggestion = self._suggestions.get(suggestion_id)
        if suggestion is None:
            raise NotFoundError("Suggestion", suggestion_id)

        suggestion.resolved = resolved
        await self.knowledge_base.update_fix_effectiveness(suggestion.fix_id, resolved)

    async def has_suggestions(self, error: ErrorRecord) -> bool:
        return bool(await self.suggest_fixes(error))

    def get_suggestion(self, suggestion_id: str) -> Optional[SuggestionRecord]:
        return self._suggestions.get(suggestion_id)

    def get_all_suggestions(self) -> List[SuggestionRecord]:
        return list(self._suggestions.values())

    def get_novel_error_patterns(self) -> List[ErrorRecord]:
        return list(self._novel_error_patterns)

    def get_outcome_statistics(self) -> OutcomeStatistics:
        resolved = sum(1 for record in self._suggestions.values() if record.resolved is True)
        not_resolved = sum(1 for record in self._suggestions.values() if record.resolved is False)
        total = len(self._suggestions)
        completed = resolved + not_resolved
        return OutcomeStatistics(
            total=total,
            resolved=resolved,
            not_resolved=not_resolved,
            pending=total - completed,
            resolution_rate=resolved / completed if completed > 0 else 0.0,
        )

    def reset(self) -> None:
        """Forget tracked suggestions and novel error patterns."""
        self._suggestions.clear()
        self._novel_error_patterns.clear()

    def _record_novel_error_pattern(self, error: ErrorRecord) -> None:
        self._novel_error_patterns.append(error)
        logger.info("No fix candidates for error %s; recorded as a novel pattern", error.id)
        if self.on_novel_error_pattern is not None:
            self.on_novel_error_pattern(error)


def build_reasoning(candidate: RankedCandidate) -> str:
    similarity_percent = round(candidate.similarity * 100)
    success_percent = round(candidate.fix.success_rate * 100)
    error_type = getattr(candidate.original_error.type, "value", candidate.original_error.type)
    return (
        f"This fix was applied to a similar {error_type} error "
        f"({similarity_percent}% similarity) in the {candidate.original_error.component} component. "
        f"It has a {success_percent}% historical success rate."
    )


def _compare_candidates(a: RankedCandidate, b: RankedCandidate) -> float:
    score_diff = b.score - a.score
    if abs(score_diff) < SCORE_TIE_TOLERANCE:
        return b.fix.success_rate - a.fix.success_rate
    return score_diff

from datetime import datetime, timezone

import pytest

from ragobs.errors import ConfigurationError, NotFoundError
from ragobs.knowledge_base import ErrorKnowledgeBase
from ragobs.models import CodeChange, ErrorContext, ErrorType, Severity, create_error_record, create_fix_record
from ragobs.ranker import FixRanker, FixRankerConfig, build_reasoning

REF = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


def _error(error_id, embedding, error_type=ErrorType.RETRIEVAL_FAILURE, component="retriever"):
    return create_error_record(
        id=error_id,
        timestamp=REF,
        type=error_type,
        component=component,
        severity=Severity.HIGH,
        context=ErrorContext(query="which plan includes SSO"),
        embedding=embedding,
    )


def _fix(error_id, fix_id, success_rate):
    return create_fix_record(
        id=fix_id,
        error_id=error_id,
        description=f"Fix {fix_id}",
        code_changes=[CodeChange("pipeline.py", "old", "new", "Tune pipeline")],
        applied_at=REF,
        resolved=True,
        success_rate=success_rate,
    )


async def _kb_with(*entries):
    """entries: (error_id, embedding, [(fix_id, success_rate), ...])"""
    kb = ErrorKnowledgeBase(embedding_dimension=3)
    for error_id, embedding, fixes in entries:
        await kb.store_error(_error(error_id, embedding))
        for fix_id, success_rate in fixes:
            await kb.link_fix(error_id, _fix(error_id, fix_id, success_rate))
    return kb


@pytest.mark.asyncio
async def test_novel_error_returns_no_suggestions_and_notifies():
    kb = await _kb_with()
    seen = []
    ranker = FixRanker(kb, on_novel_error_pattern=seen.append)
    error = _error("new", [1.0, 0.0, 0.0])

    suggestions = await ranker.suggest_fixes(error)

    assert suggestions == []
    assert seen == [error]
    assert ranker.get_novel_error_patterns() == [error]
    assert ranker.get_all_suggestions() == []


@pytest.mark.asyncio
async def test_similar_errors_without_fixes_count_as_novel():
    kb = await _kb_with(("e1", [1.0, 0.0, 0.0], []))
    ranker = FixRanker(kb)

    assert await ranker.has_suggestions(_error("new", [1.0, 0.0, 0.0])) is False
    assert len(ranker.get_novel_error_patterns()) == 1


@pytest.mark.asyncio
async def test_equal_similarity_orders_by_success_rate():
    kb = await _kb_with(("e1", [1.0, 0.0, 0.0], [("f-low", 0.3), ("f-high", 0.9)]))
    ranker = FixRanker(kb)

    suggestions = await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0]))

    assert [s.suggested_fix.id for s in suggestions] == ["f-high", "f-low"]
    assert suggestions[0].confidence == pytest.approx(0.6 * 1.0 + 0.4 * 0.9)
    assert suggestions[0].confidence >= suggestions[1].confidence


@pytest.mark.asyncio
async def test_blended_score_can_favor_less_similar_error():
    kb = await _kb_with(
        ("a", [1.0, 0.0, 0.0], [("fix-a", 0.5)]),
        ("b", [0.8, 0.6, 0.0], [("fix-b", 0.9)]),
    )
    ranker = FixRanker(kb)

    suggestions = await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0]))

    assert [s.suggested_fix.id for s in suggestions] == ["fix-b", "fix-a"]
    assert suggestions[0].confidence == pytest.approx(0.84)
    assert suggestions[1].confidence == pytest.approx(0.8)


def test_near_tie_is_broken_by_success_rate():
    ranker = FixRanker(ErrorKnowledgeBase(embedding_dimension=3))
    error = _error("e1", [1.0, 0.0, 0.0])
    fix_a = _fix("e1", "fix-a", 0.5)
    fix_b = _fix("e1", "fix-b", 0.52)

    ranked = ranker.rank([(fix_a, error, 1.0), (fix_b, error, 0.9859)])

    assert ranked[0].score == pytest.approx(0.79954)
    assert ranked[1].score == pytest.approx(0.8)
    assert [candidate.fix.id for candidate in ranked] == ["fix-b", "fix-a"]


@pytest.mark.asyncio
async def test_similarity_threshold_filters_candidates():
    kb = await _kb_with(
        ("close", [1.0, 0.0, 0.0], [("fix-close", 0.2)]),
        ("far", [0.0, 1.0, 0.0], [("fix-far", 1.0)]),
    )
    ranker = FixRanker(kb, FixRankerConfig(min_similarity_threshold=0.5))

    suggestions = await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0]))

    assert [s.suggested_fix.id for s in suggestions] == ["fix-close"]


@pytest.mark.asyncio
async def test_only_errors_of_the_same_type_are_considered():
    kb = ErrorKnowledgeBase(embedding_dimension=3)
    await kb.store_error(_error("gen", [1.0, 0.0, 0.0], error_type=ErrorType.GENERATION_ERROR))
    await kb.link_fix("gen", _fix("gen", "fix-gen", 0.9))
    ranker = FixRanker(kb)

    assert await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0])) == []


@pytest.mark.asyncio
async def test_suggestion_reasoning_and_tracking():
    kb = await _kb_with(("e1", [1.0, 0.0, 0.0], [("f1", 0.75)]))
    ranker = FixRanker(kb)

    [suggestion] = await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0]))

    assert suggestion.id.startswith("suggestion-")
    assert suggestion.original_error.id == "e1"
    assert suggestion.reasoning == (
        "This fix was applied to a similar retrieval_failure error (100% similarity) "
        "in the retriever component. It has a 75% historical success rate."
    )
    record = ranker.get_suggestion(suggestion.id)
    assert record.fix_id == "f1"
    assert record.error_id == "new"
    assert record.resolved is None


@pytest.mark.asyncio
async def test_record_outcome_feeds_back_into_success_rate():
    kb = await _kb_with(("e1", [1.0, 0.0, 0.0], [("f-good", 0.5), ("f-bad", 0.5)]))
    ranker = FixRanker(kb)
    suggestions = await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0]))
    by_fix = {s.suggested_fix.id: s.id for s in suggestions}

    await ranker.record_outcome(by_fix["f-good"], True)
    await ranker.record_outcome(by_fix["f-bad"], False)

    rates = {fix.id: fix.success_rate for fix in (await kb.get_error("e1")).fixes}
    assert rates["f-good"] > 0.5
    assert rates["f-bad"] < 0.5

    stats = ranker.get_outcome_statistics()
    assert stats.total == 2
    assert stats.resolved == 1
    assert stats.not_resolved == 1
    assert stats.pending == 0
    assert stats.resolution_rate == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_record_outcome_for_unknown_suggestion_raises():
    ranker = FixRanker(ErrorKnowledgeBase(embedding_dimension=3))

    with pytest.raises(NotFoundError, match="Suggestion with id 'suggestion-missing' not found"):
        await ranker.record_outcome("suggestion-missing", True)


@pytest.mark.asyncio
async def test_outcome_statistics_with_pending_suggestions_and_reset():
    kb = await _kb_with(("e1", [1.0, 0.0, 0.0], [("f1", 0.5), ("f2", 0.4)]))
    ranker = FixRanker(kb)
    suggestions = await ranker.suggest_fixes(_error("new", [1.0, 0.0, 0.0]))

    await ranker.record_outcome(suggestions[0].id, True)
    stats = ranker.get_outcome_statistics()
    assert (stats.total, stats.resolved, stats.pending) == (2, 1, 1)
    assert stats.resolution_rate == 1.0

    ranker.reset()
    assert ranker.get_all_suggestions() == []
    assert ranker.get_outcome_statistics().resolution_rate == 0.0


def test_config_weights_are_normalized():
    config = FixRankerConfig(similarity_weight=3, success_rate_weight=1)

    assert config.normalized_weights == (0.75, 0.25)

    ranker = FixRanker(ErrorKnowledgeBase(embedding_dimension=3), config)
    error = _error("e1", [1.0, 0.0, 0.0])
    [candidate] = ranker.rank([(_fix("e1", "f1", 0.0), error, 1.0)])
    assert candidate.score == pytest.approx(0.75)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_similar_errors": 0},
        {"min_similarity_threshold": 1.5},
        {"similarity_weight": -0.1},
        {"similarity_weight": 0, "success_rate_weight": 0},
    ],
)
def test_invalid_config_is_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        FixRankerConfig(**kwargs)


def test_build_reasoning_rounds_percentages():
    ranker = FixRanker(ErrorKnowledgeBase(embedding_dimension=3))
    error = _error("e1", [1.0, 0.0, 0.0], component="generator")
    [candidate] = ranker.rank([(_fix("e1", "f1", 0.333), error, 0.876)])

    assert build_reasoning(candidate) == (
        "This fix was applied to a similar retrieval_failure error (88% similarity) "
        "in the generator component. It has a 33% historical success rate."
    )

"""Two-minute RagObs demo: simulated traffic, a latency regression and fix recall."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from random import Random

from ragobs import DriftDetector, ErrorKnowledgeBase, FixRanker, RAGMonitor
from ragobs.config import get_settings
from ragobs.logging_config import configure_logging
from ragobs.models import (
    CodeChange,
    ErrorContext,
    ErrorType,
    QueryEvent,
    Severity,
    TimeWindow,
    create_error_record,
    create_fix_record,
)

RNG = Random(42)


def _build_demo_events(now: datetime) -> list:
    events = []
    for idx in range(400):
        created_at = now - timedelta(minutes=idx * 15)
        # The most recent two hours carry a slow reranker.
        latency_base = 2600 if idx < 8 else 450
        success = idx % 23 != 0
        events.append(
            QueryEvent(
                id=f"q-{idx}",
                timestamp=created_at,
                query=f"demo question {idx % 40}",
                success=success,
                relevance_score=round(RNG.uniform(0.72, 0.98), 3),
                confidence=round(RNG.uniform(0.6, 0.95), 3),
                latency_ms=max(20.0, RNG.gauss(latency_base, 60)),
                token_count=max(30, int(RNG.gauss(700, 180))),
                error_type=None if success else "retrieval_failure",
            )
        )
    return events


async def main() -> None:
    configure_logging()
    settings = get_settings()
    now = datetime.now(timezone.utc)

    monitor = RAGMonitor(default_control_limits=settings.control_limits())
    events = _build_demo_events(now)
    cutoff = now - timedelta(hours=2)
    for event in events:
        if event.timestamp < cutoff:
            await monitor.log_query(event)
    baseline = await monitor.update_baseline()

    for event in events:
        if event.timestamp >= cutoff:
            await monitor.log_query(event)
    statistics = await monitor.get_statistics(TimeWindow(start=now - timedelta(hours=2), end=now))

    drift = DriftDetector(settings.control_limits()).check_for_drift(statistics, baseline)
    print(json.dumps(drift.to_dict(), indent=2))

    knowledge_base = ErrorKnowledgeBase(embedding_dimension=settings.embedding_dimension)
    past_error = create_error_record(
        timestamp=now - timedelta(days=3),
        type=ErrorType.LATENCY_SPIKE,
        component="reranker",
        severity=Severity.HIGH,
        context=ErrorContext(query="demo question 7", retrieved_docs=("handbook.md",)),
    )
    await knowledge_base.store_error(past_error)
    await knowledge_base.link_fix(
        past_error.id,
        create_fix_record(
            error_id=past_error.id,
            description="Cap reranker candidates at 20",
            code_changes=[CodeChange("rerank.py", "top_n = 100", "top_n = 20", "Smaller rerank pool")],
            applied_at=now - timedelta(days=2),
            resolved=True,
            success_rate=0.8,
        ),
    )

    ranker = FixRanker(knowledge_base, settings.ranker_config())
    current_error = create_error_record(
        timestamp=now,
        type=ErrorType.LATENCY_SPIKE,
        component="reranker",
        severity=Severity.HIGH,
        context=ErrorContext(query="demo question 7", retrieved_docs=("handbook.md",)),
    )
    for suggestion in await ranker.suggest_fixes(current_error):
        print(f"{suggestion.confidence:.2f}  {suggestion.suggested_fix.description}")
        print(f"      {suggestion.reasoning}")


if __name__ == "__main__":
    asyncio.run(main())

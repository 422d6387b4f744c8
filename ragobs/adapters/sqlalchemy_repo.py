"""SQLAlchemy repository adapter for RagObs query events."""

import json
from datetime import datetime
from typing import Sequence

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from ..models import QueryEvent


class SQLAlchemyQueryEventRepository:
    """Fetches logged RAG queries from a relational table and maps them to domain models."""

    def __init__(self, db: Session, table_name: str = "rag_query_logs"):
        if not table_name.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table_name!r}")
        self.db = db
        self.table_name = table_name

    def fetch_query_events(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[QueryEvent]:
        rows = self.db.execute(
            text(
                f"""
                SELECT id, created_at, query, success, relevance_score, confidence,
                       latency_ms, token_count, error_type, error_message,
                       retrieved_documents, generation_output
                FROM {self.table_name}
                WHERE created_at >= :start_date AND created_at <= :end_date
                ORDER BY created_at
                """
            )
            .bindparams(bindparam("start_date", type_=DateTime), bindparam("end_date", type_=DateTime))
            .columns(created_at=DateTime),
            {"start_date": start_date, "end_date": end_date},
        ).fetchall()

        return [
            QueryEvent(
                id=str(row.id),
                timestamp=_parse_timestamp(row.created_at),
                query=row.query or "",
                success=bool(row.success),
                relevance_score=float(row.relevance_score or 0.0),
                confidence=float(row.confidence or 0.0),
                latency_ms=float(row.latency_ms or 0.0),
                token_count=int(row.token_count or 0),
                error_type=row.error_type,
                error_message=row.error_message,
                retrieved_documents=_parse_document_list(row.retrieved_documents),
                generation_output=row.generation_output or "",
            )
            for row in rows
        ]


def _parse_timestamp(raw_value) -> datetime:
    # Some drivers hand timestamps back as ISO strings.
    if isinstance(raw_value, str):
        return datetime.fromisoformat(raw_value)
    return raw_value


def _parse_document_list(raw_documents) -> tuple:
    if raw_documents is None:
        return ()
    if isinstance(raw_documents, str):
        try:
            raw_documents = json.loads(raw_documents)
        except json.JSONDecodeError:
            return ()
    if isinstance(raw_documents, list):
        return tuple(str(document) for document in raw_documents if document is not None)
    return ()

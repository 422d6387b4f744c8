"""Adapters for integrating RagObs with storage backends."""

from .memory import InMemoryErrorStore, InMemoryQueryStore
from .sqlalchemy_repo import SQLAlchemyQueryEventRepository
from .vector_index import InMemoryVectorIndex, VectorIndexConfig, create_vector_index

__all__ = [
    "InMemoryErrorStore",
    "InMemoryQueryStore",
    "InMemoryVectorIndex",
    "SQLAlchemyQueryEventRepository",
    "VectorIndexConfig",
    "create_vector_index",
]

"""Embedding helpers: canonical error text, cosine similarity, placeholder generator."""

from typing import List, Sequence

import numpy as np

from .models import ErrorRecord


class CharacterCodeEmbeddingGenerator:
    """Deterministic, non-semantic stand-in for a real embedding model.

    Each position takes the character code of the text (cycled) scaled into
    [-1, 1]. Similar strings produce similar vectors only by accident; plug a
    real model in through the ``EmbeddingGenerator`` protocol for production.
    """

    def __init__(self, dimension: int = 1536):
        self.dimension = dimension

    def generate(self, text: str) -> List[float]:
        embedding = []
        for i in range(self.dimension):
            char_code = ord(text[i % len(text)]) if text else 0
            embedding.append((char_code / 255) * 2 - 1)
        return embedding


def build_error_embedding_text(error: ErrorRecord) -> str:
    """Canonical text for an error; line order is fixed so embeddings are reproducible."""
    context = error.context
    parts = [
        f"Error type: {_enum_value(error.type)}",
        f"Component: {error.component}",
        f"Severity: {_enum_value(error.severity)}",
        f"Query: {context.query}",
    ]
    if context.generation_output:
        parts.append(f"Output: {context.generation_output}")
    if context.stack_trace:
        parts.append(f"Stack: {context.stack_trace}")
    if context.retrieved_docs:
        parts.append(f"Docs: {', '.join(context.retrieved_docs)}")
    return "\n".join(parts)


def build_error_query_text(error: ErrorRecord) -> str:
    """Shorter text used when looking up errors similar to ``error``."""
    context = error.context
    parts = [
        f"Error type: {_enum_value(error.type)}",
        f"Component: {error.component}",
        f"Query: {context.query}",
    ]
    if context.generation_output:
        parts.append(f"Output: {context.generation_output}")
    if context.stack_trace:
        parts.append(f"Stack: {context.stack_trace}")
    return "\n".join(parts)


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0 for mismatched lengths or a zero vector."""
    if len(vector_a) != len(vector_b):
        return 0.0

    arr_a = np.asarray(vector_a, dtype=float)
    arr_b = np.asarray(vector_b, dtype=float)

    norm_a = np.linalg.norm(arr_a)
    norm_b = np.linalg.norm(arr_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(arr_a, arr_b) / (norm_a * norm_b))


def _enum_value(value) -> str:
    return getattr(value, "value", value)

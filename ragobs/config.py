"""Configuration management"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from .adapters.vector_index import VectorIndexConfig
from .models import ControlLimits
from .ranker import FixRankerConfig


class RagObsSettings(BaseSettings):
    """Environment-driven defaults, read from ``RAGOBS_*`` variables."""

    model_config = SettingsConfigDict(env_prefix="RAGOBS_", env_file=".env", extra="ignore")

    # Knowledge base
    embedding_dimension: int = 1536  # OpenAI embedding size
    vector_index_provider: str = "memory"
    vector_index_name: str = "rag-observability-errors"
    vector_index_metric: str = "cosine"

    # Drift control limits
    success_rate_lower: float = 0.9
    relevance_score_lower: float = 0.7
    latency_upper_ms: float = 5000.0
    control_sigma: float = 2.0

    # Fix ranking
    max_similar_errors: int = 10
    min_similarity_threshold: float = 0.3
    similarity_weight: float = 0.6
    success_rate_weight: float = 0.4

    log_level: str = "INFO"

    def control_limits(self) -> ControlLimits:
        return ControlLimits(
            success_rate_lower=self.success_rate_lower,
            relevance_score_lower=self.relevance_score_lower,
            latency_upper=self.latency_upper_ms,
            sigma=self.control_sigma,
        )

    def ranker_config(self) -> FixRankerConfig:
        return FixRankerConfig(
            max_similar_errors=self.max_similar_errors,
            min_similarity_threshold=self.min_similarity_threshold,
            similarity_weight=self.similarity_weight,
            success_rate_weight=self.success_rate_weight,
        )

    def vector_index_config(self) -> VectorIndexConfig:
        return VectorIndexConfig(
            provider=self.vector_index_provider,
            index_name=self.vector_index_name,
            dimension=self.embedding_dimension,
            metric=self.vector_index_metric,
        )


@lru_cache
def get_settings() -> RagObsSettings:
    return RagObsSettings()

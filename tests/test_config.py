import logging

import pytest

from ragobs.adapters.vector_index import InMemoryVectorIndex, VectorIndexConfig, create_vector_index
from ragobs.config import RagObsSettings
from ragobs.errors import ConfigurationError
from ragobs.logging_config import configure_logging
from ragobs.models import ControlLimits


def test_settings_defaults_build_default_components(monkeypatch):
    monkeypatch.delenv("RAGOBS_LATENCY_UPPER_MS", raising=False)
    settings = RagObsSettings(_env_file=None)

    assert settings.control_limits() == ControlLimits()
    assert settings.ranker_config().normalized_weights == pytest.approx((0.6, 0.4))
    assert settings.vector_index_config() == VectorIndexConfig()


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("RAGOBS_LATENCY_UPPER_MS", "1200")
    monkeypatch.setenv("RAGOBS_SIMILARITY_WEIGHT", "0.8")
    monkeypatch.setenv("RAGOBS_SUCCESS_RATE_WEIGHT", "0.2")
    monkeypatch.setenv("RAGOBS_EMBEDDING_DIMENSION", "384")

    settings = RagObsSettings(_env_file=None)

    assert settings.control_limits().latency_upper == 1200
    assert settings.ranker_config().similarity_weight == 0.8
    assert settings.vector_index_config().dimension == 384


def test_out_of_range_settings_fail_when_built(monkeypatch):
    monkeypatch.setenv("RAGOBS_SUCCESS_RATE_LOWER", "1.5")

    settings = RagObsSettings(_env_file=None)

    with pytest.raises(ConfigurationError):
        settings.control_limits()


def test_vector_index_factory():
    assert isinstance(create_vector_index(VectorIndexConfig()), InMemoryVectorIndex)

    with pytest.raises(ConfigurationError, match="not built in"):
        create_vector_index(VectorIndexConfig(provider="pinecone"))
    with pytest.raises(ConfigurationError):
        create_vector_index(VectorIndexConfig(metric="euclidean"))
    with pytest.raises(ConfigurationError):
        VectorIndexConfig(dimension=0)


def test_configure_logging_installs_single_handler():
    configure_logging("debug")
    configure_logging("warning")

    package_logger = logging.getLogger("ragobs")
    assert len(package_logger.handlers) == 1
    assert package_logger.level == logging.WARNING

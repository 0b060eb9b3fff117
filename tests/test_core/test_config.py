from __future__ import annotations

import pytest
from pydantic import ValidationError

from rag_indexer.config import Settings
from rag_indexer.schemas.embedding import EmbeddingConfig


def test_defaults() -> None:
    s = Settings(_env_file=None)
    assert s.embedding_model == "gemini-embedding-001"
    assert s.embedding_batch_size == 250
    assert s.embedding_concurrency == 10
    assert s.max_chunk_size == 8000


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMBEDDING_API_KEY", "sk-env")
    monkeypatch.setenv("EMBEDDING_BATCH_SIZE", "64")
    monkeypatch.setenv("EMBEDDING_HEADERS", '{"X-Team": "search"}')
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = Settings(_env_file=None)

    assert s.embedding_api_key == "sk-env"
    assert s.embedding_batch_size == 64
    assert s.embedding_headers == {"X-Team": "search"}
    assert s.log_level == "DEBUG"


def test_empty_base_url_means_default_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMBEDDING_BASE_URL", "")
    assert Settings(_env_file=None).embedding_base_url is None


def test_embedding_config_from_settings() -> None:
    s = Settings(
        _env_file=None,
        embedding_api_key="sk-test",
        embedding_batch_size=100,
        embedding_request_timeout=30.0,
        include_file_context=False,
    )

    config = EmbeddingConfig.from_settings(s)

    assert config.api_key == "sk-test"
    assert config.model == s.embedding_model
    assert config.batch_size == 100
    assert config.base_url == s.embedding_base_url
    assert config.request_timeout == 30.0
    assert config.include_file_context is False


@pytest.mark.parametrize("field", ["batch_size", "max_chunk_size"])
def test_non_positive_sizes_rejected(field: str) -> None:
    with pytest.raises(ValidationError):
        EmbeddingConfig(api_key="k", **{field: 0})

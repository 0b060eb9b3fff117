from __future__ import annotations

import pytest

from rag_indexer.schemas.embedding import EmbeddingConfig


@pytest.fixture
def config() -> EmbeddingConfig:
    """Raw chunk text is sent to the provider, so fakes can match on content."""
    return EmbeddingConfig(api_key="test-key", include_file_context=False)

from __future__ import annotations

import logging
import time

from openai import AsyncOpenAI

from rag_indexer.core.providers.base import BaseEmbeddingProvider
from rag_indexer.schemas.embedding import EmbeddingConfig

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    def __init__(self, config: EmbeddingConfig) -> None:
        # Retries are the caller's concern; the SDK's built-in retry is disabled.
        self._client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            default_headers=config.headers or None,
            max_retries=0,
        )

    async def embed_batch(self, texts: list[str], model: str) -> list[list[float]]:
        if not texts:
            return []

        start = time.monotonic()
        response = await self._client.embeddings.create(
            model=model,
            input=texts,
            encoding_format="float",
        )
        latency_ms = int((time.monotonic() - start) * 1000)
        usage = response.usage
        logger.info(
            "Embeddings request",
            extra={
                "model": model,
                "batch_size": len(texts),
                "prompt_tokens": usage.prompt_tokens if usage else None,
                "latency_ms": latency_ms,
            },
        )
        return [item.embedding for item in response.data]

    async def aclose(self) -> None:
        await self._client.close()

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbeddingProvider(ABC):
    """Abstract batched embedding client.

    Concrete implementation: OpenAIEmbeddingProvider (any OpenAI-compatible
    endpoint, Gemini by default). Providers never retry; a failed call raises.
    """

    @abstractmethod
    async def embed_batch(self, texts: list[str], model: str) -> list[list[float]]:
        """Return one embedding vector per text, in input order."""
        ...

    async def aclose(self) -> None:
        """Release any underlying HTTP resources."""
        return None

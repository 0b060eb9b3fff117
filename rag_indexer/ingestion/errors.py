from __future__ import annotations


class EmbeddingPipelineError(RuntimeError):
    """Base class for failures raised by the embedding pipeline."""


class ChunkingError(EmbeddingPipelineError):
    """A file could not be chunked. Fatal for the whole pipeline call."""


class EmbeddingRequestError(EmbeddingPipelineError):
    """The embeddings call for a batch failed or ran past its deadline."""


class EmbeddingValidationError(EmbeddingPipelineError):
    """The embeddings response broke the contract (count or dimension)."""


class FileReadError(OSError):
    """A file could not be read. Reported and skipped, never raised by the pipeline."""

    def __init__(self, relative_path: str, reason: str) -> None:
        super().__init__(f"Could not read file {relative_path}: {reason}")
        self.relative_path = relative_path
        self.reason = reason

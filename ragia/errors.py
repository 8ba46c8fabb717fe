"""Error taxonomy for the RAG pipeline."""
from typing import Optional


class RagError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(RagError):
    """Invalid or missing configuration. Fatal at startup."""


class EmbeddingServiceError(RagError):
    """Embedding endpoint unreachable, non-success, or malformed response."""


class EmbeddingTimeoutError(EmbeddingServiceError):
    """Embedding request exceeded its time bound."""


class DimensionMismatchError(RagError):
    """An embedding does not have the configured dimension."""

    def __init__(self, expected: int, actual: int, context: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        message = f"Embedding dimension mismatch: expected {expected}, got {actual}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class GenerationError(RagError):
    """Generative model call failed. Never fatal to a query."""


class GenerationTimeoutError(GenerationError):
    """Generation request exceeded its time bound."""


class ValidationError(RagError):
    """Client supplied invalid input (e.g. an empty question)."""


class StorageError(RagError):
    """Vector store / database failure."""


class DocumentReadError(RagError):
    """A source document could not be read or extracted."""

"""Embedding client: text -> fixed-dimension vector.

Wraps the model capability and enforces the configured dimension. A vector
of the wrong length is a hard error, never truncated or padded.
"""
import math
from numbers import Real
from typing import List

import structlog

from ragia.config import Settings
from ragia.errors import DimensionMismatchError, EmbeddingServiceError
from ragia.llm_client import ModelCapability

logger = structlog.get_logger()

PROBE_TEXT = "ping"


class EmbeddingClient:
    """Validating front for the embedding service."""

    def __init__(self, model: ModelCapability, settings: Settings):
        self.model = model
        self.dimension = settings.embedding_dim
        self.model_name = settings.embeddings_model

    async def embed(self, text: str) -> List[float]:
        """Embed a text segment.

        Raises:
            EmbeddingServiceError: Service failure or non-numeric vector
            DimensionMismatchError: Vector length != configured dimension
        """
        vector = await self.model.embed(text)

        if not all(isinstance(v, Real) and not isinstance(v, bool) for v in vector):
            logger.error("embedding_not_numeric", model=self.model_name)
            raise EmbeddingServiceError("Embedding response contains non-numeric values")

        if not all(math.isfinite(v) for v in vector):
            logger.error("embedding_not_finite", model=self.model_name)
            raise EmbeddingServiceError("Embedding response contains NaN or infinite values")

        if len(vector) != self.dimension:
            logger.error(
                "embedding_dimension_mismatch",
                expected=self.dimension,
                actual=len(vector),
                model=self.model_name,
            )
            raise DimensionMismatchError(self.dimension, len(vector))

        return [float(v) for v in vector]

    async def probe(self) -> int:
        """Check the service is up and returns vectors of the right size.

        Returns:
            The verified dimension

        Raises:
            Same as embed()
        """
        logger.info("embedding_service_probe", model=self.model_name)

        try:
            vector = await self.embed(PROBE_TEXT)
        except (EmbeddingServiceError, DimensionMismatchError) as e:
            logger.error(
                "embedding_service_probe_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.info("embedding_service_probe_ok", dimension=len(vector))
        return len(vector)

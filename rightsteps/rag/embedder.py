"""Embedding client: text -> fixed-length vector via the model service."""
import math
from typing import List
import structlog

from rightsteps import config
from rightsteps.errors import EmbeddingServiceError

logger = structlog.get_logger()


class EmbeddingClient:
    """Wraps an embedding service and validates what it returns.

    ``service`` is anything with an ``async embed(text) -> List[float]``
    method (see ``rightsteps.llm_client``). One outbound call per ``embed``;
    no caching and no batching.
    """

    def __init__(self, service, dimension: int = None):
        self.service = service
        self.dimension = dimension or config.EMBEDDING_DIMENSION

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            EmbeddingServiceError: If the call fails or the vector is malformed
        """
        try:
            vector = await self.service.embed(text)
        except Exception as e:
            logger.error(
                "embedding_generation_failed",
                text_preview=text[:100],
                error=str(e),
                error_type=type(e).__name__,
            )
            raise EmbeddingServiceError("Failed to generate embedding", e) from e

        return self._validate(vector)

    def _validate(self, vector) -> List[float]:
        if not isinstance(vector, (list, tuple)) or not vector:
            raise EmbeddingServiceError("Empty or malformed embedding returned")

        if len(vector) != self.dimension:
            raise EmbeddingServiceError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}"
            )

        try:
            values = [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingServiceError("Non-numeric embedding returned", e) from e

        if not all(math.isfinite(v) for v in values):
            raise EmbeddingServiceError("Embedding contains non-finite values")

        return values

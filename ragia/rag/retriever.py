"""Retriever for semantic search over indexed documents.

Handles:
- Query embedding generation
- Vector store search
- Ranked result list (best first)

Embedding and storage errors propagate unchanged.
"""
from typing import List, Optional

import structlog

from ragia.config import Settings
from ragia.errors import ValidationError
from ragia.rag.embeddings import EmbeddingClient
from ragia.rag.models import RetrievalResult
from ragia.rag.store import VectorStore

logger = structlog.get_logger()


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        settings: Settings,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding client for the question
            store: Vector store to search
            settings: Process settings (default top_k)
        """
        self.embedder = embedder
        self.store = store
        self.top_k = settings.top_k

    async def retrieve(
        self, question: str, k: Optional[int] = None
    ) -> List[RetrievalResult]:
        """Retrieve the passages most relevant to a question.

        Args:
            question: Question text
            k: Number of results (default from settings)

        Returns:
            Up to k RetrievalResult objects, sorted by score (best first)
        """
        if not question or not question.strip():
            raise ValidationError("Question cannot be empty")

        k = k or self.top_k

        logger.info("retrieval_started", question_length=len(question), top_k=k)

        try:
            query_embedding = await self.embedder.embed(question)
            results = await self.store.search(query_embedding, k)
        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                question_preview=question[:100],
            )
            raise

        logger.info(
            "retrieval_completed",
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results

"""FAISS vector store for semantic search.

Handles:
- Chunk table creation (SQLite) and dimension bookkeeping
- Cosine similarity index (FAISS inner product over normalized vectors)
- Catch-up of the index with rows written by other processes
- Index persistence
"""
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np
import structlog

from ragia import db
from ragia.config import Settings
from ragia.errors import DimensionMismatchError, StorageError
from ragia.rag.models import DocumentChunk, RetrievalResult

logger = structlog.get_logger()

DIMENSION_KEY = "embedding_dimension"


class VectorStore:
    """SQLite-backed chunk store with a FAISS cosine index keyed by row id."""

    def __init__(
        self,
        settings: Settings,
        db_path: Optional[Path] = None,
        index_path: Optional[Path] = None,
    ):
        """Initialize the vector store.

        Args:
            settings: Process settings (dimension, data directory)
            db_path: SQLite path (default: DATA_DIR/ragia.sqlite)
            index_path: FAISS index path (default: DATA_DIR/vectors.index)
        """
        self.dimension = settings.embedding_dim
        self.db_path = db_path or settings.db_path
        self.index_path = index_path or settings.vector_index_path

        self.index: Optional[faiss.IndexIDMap2] = None
        self._last_indexed_id = 0

    def _new_index(self) -> faiss.IndexIDMap2:
        self._last_indexed_id = 0
        return faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))

    def _load_or_create_index(self) -> faiss.IndexIDMap2:
        """Load the persisted index if it agrees with the table, else start fresh."""
        if not self.index_path.exists():
            logger.info("no_vector_index_found_initializing_new")
            return self._new_index()

        try:
            index = faiss.read_index(str(self.index_path))
        except RuntimeError as e:
            logger.warning("vector_index_unreadable", path=str(self.index_path), error=str(e))
            return self._new_index()

        if index.d != self.dimension or not isinstance(index, faiss.IndexIDMap2):
            logger.warning(
                "vector_index_discarded",
                reason="dimension_or_type_mismatch",
                index_dimension=index.d,
            )
            return self._new_index()

        ids = faiss.vector_to_array(index.id_map)
        last_id = int(ids.max()) if ids.size else 0

        # Table was reset or truncated under the index
        if last_id > db.get_max_chunk_id(self.db_path):
            logger.warning("vector_index_discarded", reason="ahead_of_table", last_id=last_id)
            return self._new_index()

        self._last_indexed_id = last_id
        logger.info("vector_index_loaded", vector_count=index.ntotal, dimension=index.d)
        return index

    def _sync_index(self) -> int:
        """Add table rows the index has not seen yet.

        Returns:
            Number of vectors added
        """
        rows = db.get_embeddings_after(self.db_path, self._last_indexed_id)
        if not rows:
            return 0

        expected_bytes = self.dimension * 4
        for row_id, blob in rows:
            if len(blob) != expected_bytes:
                raise StorageError(
                    f"Stored embedding for row {row_id} has {len(blob) // 4} "
                    f"dimensions, expected {self.dimension}"
                )

        vectors = np.vstack(
            [np.frombuffer(blob, dtype=np.float32) for _, blob in rows]
        ).astype(np.float32)
        ids = np.array([row_id for row_id, _ in rows], dtype=np.int64)

        faiss.normalize_L2(vectors)
        self.index.add_with_ids(vectors, ids)
        self._last_indexed_id = int(ids[-1])

        logger.debug("vector_index_synced", added=len(rows), total_vectors=self.index.ntotal)
        return len(rows)

    def _require_schema(self) -> None:
        if self.index is None:
            raise StorageError("Vector store not initialized. Call ensure_schema() first.")

    async def ensure_schema(self) -> None:
        """Create the chunk table and similarity index if absent.

        Idempotent; safe to call on every process start and from concurrent
        processes.

        Raises:
            DimensionMismatchError: If the table was built with another dimension
            StorageError: If the database cannot be initialized
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        db.init_database(self.db_path)

        stored_dim = int(
            db.set_metadata_if_absent(self.db_path, DIMENSION_KEY, str(self.dimension))
        )
        if stored_dim != self.dimension:
            raise DimensionMismatchError(
                stored_dim,
                self.dimension,
                context=f"store at {self.db_path} was built with dim={stored_dim}; rebuild it",
            )

        self.index = self._load_or_create_index()
        added = self._sync_index()

        logger.info(
            "vector_store_ready",
            db_path=str(self.db_path),
            dimension=self.dimension,
            vector_count=self.index.ntotal,
            caught_up=added,
        )

    async def insert(self, chunk: DocumentChunk) -> int:
        """Append one chunk. Re-inserting a source creates a duplicate row.

        Returns:
            Assigned row id

        Raises:
            DimensionMismatchError: Wrong embedding length
            StorageError: Database failure or non-finite vector
        """
        self._require_schema()

        if len(chunk.embedding) != self.dimension:
            raise DimensionMismatchError(
                self.dimension, len(chunk.embedding), context=chunk.source_id
            )
        if not chunk.text:
            raise StorageError(f"Refusing to store empty chunk {chunk.source_id}")

        vector = np.asarray(chunk.embedding, dtype=np.float32)
        if not np.isfinite(vector).all():
            raise StorageError(f"Refusing to store non-finite embedding for {chunk.source_id}")

        row_id = db.insert_chunk(
            self.db_path,
            source_id=chunk.source_id,
            text=chunk.text,
            embedding=vector.tobytes(),
        )

        # Picks up this row plus anything another writer added meanwhile
        self._sync_index()

        return row_id

    async def search(
        self, query_embedding: Sequence[float], k: int
    ) -> List[RetrievalResult]:
        """Find the k most similar chunks.

        Args:
            query_embedding: Query vector of the configured dimension
            k: Maximum number of results

        Returns:
            Results by descending cosine score, ties by insertion order.
            Empty list for an empty store.

        Raises:
            DimensionMismatchError: Wrong query length
            StorageError: Database failure or non-finite vector
        """
        self._require_schema()

        if len(query_embedding) != self.dimension:
            raise DimensionMismatchError(
                self.dimension, len(query_embedding), context="query"
            )

        query_vector = np.array([query_embedding], dtype=np.float32)
        if not np.isfinite(query_vector).all():
            raise StorageError("Query embedding contains NaN or infinite values")

        self._sync_index()

        top_k = min(k, self.index.ntotal)
        if top_k <= 0:
            return []

        faiss.normalize_L2(query_vector)

        scores, ids = self.index.search(query_vector, top_k)

        hits = [
            (int(row_id), float(score))
            for row_id, score in zip(ids[0].tolist(), scores[0].tolist())
            if row_id != -1
        ]
        rows = db.get_chunks_by_ids(self.db_path, [row_id for row_id, _ in hits])

        ranked = []
        for row_id, score in hits:
            row = rows.get(row_id)
            if row is None:
                logger.warning("indexed_row_missing", row_id=row_id)
                continue
            ranked.append((row_id, max(-1.0, min(1.0, score)), row))

        ranked.sort(key=lambda item: (-item[1], item[0]))

        results = [
            RetrievalResult(source_id=row["source_id"], text=row["text"], score=score)
            for _, score, row in ranked[:k]
        ]

        logger.info("vector_search_completed", top_k=k, results_found=len(results))
        return results

    async def persist(self) -> None:
        """Write the FAISS index to disk atomically."""
        if self.index is None:
            return

        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.index_path.with_suffix(self.index_path.suffix + ".tmp")

        try:
            faiss.write_index(self.index, str(tmp_path))
            os.replace(tmp_path, self.index_path)
        except (RuntimeError, OSError) as e:
            raise StorageError(f"Failed to save vector index: {e}") from e

        logger.info(
            "vector_index_saved",
            index_path=str(self.index_path),
            vector_count=self.index.ntotal,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store."""
        if self.index is None:
            return {
                "initialized": False,
                "chunk_count": 0,
                "vector_count": 0,
                "dimension": self.dimension,
            }

        return {
            "initialized": True,
            "chunk_count": db.get_chunk_count(self.db_path),
            "vector_count": self.index.ntotal,
            "dimension": self.dimension,
            "index_exists_on_disk": self.index_path.exists(),
        }

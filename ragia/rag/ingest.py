"""Ingest pipeline for indexing source documents.

Orchestrates, strictly in sequence:
- Embedding service preflight
- Store schema setup
- File discovery and text extraction
- Chunking
- Per-chunk embedding and storage

A failing chunk aborts the whole run. Everything stored before the failure
stays; nothing after it is attempted.
"""
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import structlog

from ragia.config import Settings
from ragia.errors import DocumentReadError, StorageError
from ragia.rag.chunker import TextChunker
from ragia.rag.embeddings import EmbeddingClient
from ragia.rag.loaders import discover_documents, extract_text
from ragia.rag.models import DocumentChunk
from ragia.rag.store import VectorStore

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, Path], None]


@dataclass
class IngestReport:
    """Counters for one ingestion run."""

    files: int = 0
    skipped: int = 0
    chunks: int = 0
    stored: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def make_source_id(relative_path: str, chunk_index: int) -> str:
    return f"{relative_path}#{chunk_index}"


class IngestPipeline:
    """Pipeline for ingesting documents into the RAG system."""

    def __init__(
        self,
        settings: Settings,
        embedder: EmbeddingClient,
        store: VectorStore,
        ingest_path: Optional[Path] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            settings: Process settings
            embedder: Embedding client
            store: Vector store
            ingest_path: Directory to index (default: settings.ingest_path)
        """
        self.ingest_path = Path(ingest_path or settings.ingest_path)
        self.embedder = embedder
        self.store = store
        self.chunker = TextChunker(chunk_size=settings.chunk_size)

        logger.info(
            "ingest_pipeline_initialized",
            ingest_path=str(self.ingest_path),
            chunk_size=self.chunker.chunk_size,
        )

    async def ingest_file(self, file_path: Path, report: IngestReport) -> int:
        """Ingest a single document.

        Args:
            file_path: Path to the document
            report: Run counters, updated in place

        Returns:
            Number of chunks stored for this file

        Raises:
            EmbeddingServiceError, DimensionMismatchError, StorageError:
                On any chunk failure (aborts the run)
        """
        relative_path = file_path.relative_to(self.ingest_path).as_posix()

        try:
            text = extract_text(file_path)
        except DocumentReadError as e:
            logger.warning("document_skipped", path=relative_path, error=str(e))
            report.skipped += 1
            return 0

        chunks = self.chunker.chunk_text(text)
        report.chunks += len(chunks)

        if not chunks:
            logger.warning("no_chunks_created", path=relative_path)
            return 0

        logger.info(
            "ingesting_file",
            path=relative_path,
            **self.chunker.get_chunk_stats(chunks),
        )

        for chunk in chunks:
            source_id = make_source_id(relative_path, chunk.chunk_index)
            try:
                embedding = await self.embedder.embed(chunk.content)
                await self.store.insert(
                    DocumentChunk(
                        source_id=source_id,
                        text=chunk.content,
                        embedding=tuple(embedding),
                    )
                )
            except Exception as e:
                logger.error(
                    "ingest_aborted",
                    source_id=source_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    stored_so_far=report.stored,
                )
                raise

            report.stored += 1
            logger.debug("chunk_stored", source_id=source_id, length=len(chunk.content))

        logger.info("file_ingested", path=relative_path, chunks_stored=len(chunks))
        return len(chunks)

    async def run(
        self, progress_callback: Optional[ProgressCallback] = None
    ) -> IngestReport:
        """Ingest every supported document under the ingest path.

        Args:
            progress_callback: Optional callback(current, total, file_path)

        Returns:
            IngestReport with files discovered, skipped, chunks and stored

        Raises:
            EmbeddingServiceError, DimensionMismatchError: Preflight or chunk failure
            StorageError: Store failure
            FileNotFoundError: Ingest path missing
        """
        logger.info("ingest_started", ingest_path=str(self.ingest_path))

        # Preflight before touching storage
        await self.embedder.probe()

        await self.store.ensure_schema()

        documents = discover_documents(self.ingest_path)
        report = IngestReport(files=len(documents))

        if not documents:
            logger.warning("no_documents_found", ingest_path=str(self.ingest_path))
            return report

        try:
            for idx, file_path in enumerate(documents, 1):
                if progress_callback:
                    progress_callback(idx, len(documents), file_path)

                await self.ingest_file(file_path, report)
        except BaseException:
            # Keep the index in step with rows already stored, then surface the abort
            try:
                await self.store.persist()
            except StorageError as persist_error:
                logger.error("index_persist_failed_after_abort", error=str(persist_error))
            raise

        await self.store.persist()

        logger.info("ingest_completed", **report.as_dict())
        return report

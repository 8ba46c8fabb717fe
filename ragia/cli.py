"""Index documents for the RAG pipeline.

Usage:
    ragia-ingest                          # Index INGEST_PATH
    ragia-ingest --ingest-path ./docs     # Index another directory
    ragia-ingest --config ragia.yaml -v   # YAML settings, verbose output
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from ragia.config import Settings, load_settings
from ragia.errors import ConfigError, RagError
from ragia.llm_client import ModelClient
from ragia.logs import configure_logging
from ragia.rag.embeddings import EmbeddingClient
from ragia.rag.ingest import IngestPipeline, IngestReport
from ragia.rag.store import VectorStore

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, report: IngestReport, settings: Settings):
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete!")
        print(f"{'=' * 60}\n")
        print(f"  Files discovered:  {report.files}")
        print(f"  Files skipped:     {report.skipped}")
        print(f"  Chunks produced:   {report.chunks}")
        print(f"  Chunks stored:     {report.stored}")
        print(f"  Time elapsed:      {elapsed_seconds:.1f}s")

        if report.stored > 0 and elapsed_seconds > 0:
            print(f"  Indexing rate:     {report.stored / elapsed_seconds:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if report.skipped > 0:
            print(f"Warning: {report.skipped} file(s) could not be read. Check logs for details.\n")

        if report.stored > 0:
            print(f"Database at: {settings.db_path}")
            print(f"Index at:    {settings.vector_index_path}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ragia-ingest",
        description="Index markdown, text and PDF documents for RAG queries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--ingest-path",
        type=Path,
        default=None,
        help="Directory to index (default: $INGEST_PATH)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML settings file (default: $RAGIA_CONFIG)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Run one ingestion. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(config_file=args.config)
    except ConfigError as e:
        print(f"\nConfiguration error: {e}\n", file=sys.stderr)
        return 1

    if args.ingest_path is not None:
        settings = settings.model_copy(update={"ingest_path": args.ingest_path})

    configure_logging("DEBUG" if args.verbose else settings.log_level)
    progress = ProgressReporter(verbose=args.verbose)

    print("\nConfiguration:")
    print(f"   Ingest path:      {settings.ingest_path}")
    print(f"   Embeddings:       {settings.embeddings_model} @ {settings.embeddings_url}")
    print(f"   Dimension:        {settings.embedding_dim}")
    print(f"   Chunk size:       {settings.chunk_size} chars")
    print(f"   Data directory:   {settings.data_dir}")

    model = ModelClient(settings)
    pipeline = IngestPipeline(
        settings,
        embedder=EmbeddingClient(model, settings),
        store=VectorStore(settings),
    )

    try:
        progress.start("Indexing Documents")
        report = await pipeline.run(progress_callback=progress.update)

    except KeyboardInterrupt:
        print("\n\nIngestion cancelled by user.\n", file=sys.stderr)
        return 1

    except (RagError, FileNotFoundError) as e:
        print(f"\nIngestion aborted: {e}\n", file=sys.stderr)
        logger.error("ingest_cli_failed", error=str(e), error_type=type(e).__name__)
        return 1

    progress.finish(report, settings)
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

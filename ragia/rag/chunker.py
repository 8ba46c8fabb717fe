"""Text chunking for RAG pipeline.

Whitespace is collapsed to single spaces, then the normalized string is cut
into consecutive, non-overlapping windows of at most ``chunk_size``
characters. No sentence or token awareness: identical input always yields
identical chunks.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

import structlog

logger = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 800

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def split(text: str, max_len: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """Split text into length-bounded windows of the normalized text.

    Args:
        text: Raw text
        max_len: Maximum characters per chunk

    Returns:
        Chunks in order; empty list for empty or blank input
    """
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got {max_len}")

    clean = normalize_whitespace(text)
    return [clean[i : i + max_len] for i in range(0, len(clean), max_len)]


@dataclass
class TextChunk:
    """Represents a chunk of text with position information.

    Positions refer to the whitespace-normalized text.
    """

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Character-based text chunker."""

    def __init__(self, chunk_size: Optional[int] = None):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default 800)
        """
        self.chunk_size = chunk_size or DEFAULT_CHUNK_SIZE

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into chunks with their offsets.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects
        """
        chunks = []
        start = 0

        for index, content in enumerate(split(text, self.chunk_size)):
            chunks.append(
                TextChunk(
                    content=content,
                    char_start=start,
                    char_end=start + len(content),
                    chunk_index=index,
                )
            )
            start += len(content)

        if chunks:
            logger.debug(
                "text_chunked",
                text_length=len(text),
                chunk_count=len(chunks),
                chunk_size=self.chunk_size,
            )

        return chunks

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
        }

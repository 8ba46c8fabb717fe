"""Shared fixtures: isolated settings and a deterministic fake model service."""
import hashlib
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pytest

from ragia.config import Settings
from ragia.errors import EmbeddingServiceError, GenerationError
from ragia.rag.embeddings import EmbeddingClient
from ragia.rag.store import VectorStore

TEST_DIM = 16


def fake_vector(text: str, dimension: int = TEST_DIM) -> List[float]:
    """Deterministic pseudo-embedding: same text, same vector."""
    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
    rng = np.random.default_rng(seed)
    return rng.standard_normal(dimension).tolist()


class FakeModel:
    """In-process stand-in for the embedding and chat services."""

    def __init__(
        self,
        dimension: int = TEST_DIM,
        answer: str = "It is described in Source 1.",
        fail_embed_after: Optional[int] = None,
        generate_error: Optional[Exception] = None,
    ):
        self.dimension = dimension
        self.answer = answer
        self.fail_embed_after = fail_embed_after
        self.generate_error = generate_error
        self.embed_calls: List[str] = []
        self.generate_calls: List[List[Dict[str, str]]] = []

    async def embed(self, text: str) -> List[float]:
        if self.fail_embed_after is not None and len(self.embed_calls) >= self.fail_embed_after:
            raise EmbeddingServiceError("Embedding service unreachable")
        self.embed_calls.append(text)
        return fake_vector(text, self.dimension)

    async def generate(self, messages, max_tokens=None, temperature=None) -> str:
        self.generate_calls.append(messages)
        if self.generate_error is not None:
            raise self.generate_error
        return self.answer


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory."""
    ingest_path = tmp_path / "docs"
    ingest_path.mkdir()
    return Settings(
        embedding_dim=TEST_DIM,
        ingest_path=ingest_path,
        data_dir=tmp_path / "store",
        top_k=4,
    )


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def embedder(fake_model: FakeModel, settings: Settings) -> EmbeddingClient:
    return EmbeddingClient(fake_model, settings)


@pytest.fixture
async def store(settings: Settings) -> VectorStore:
    """Initialized, empty vector store."""
    vector_store = VectorStore(settings)
    await vector_store.ensure_schema()
    return vector_store


@pytest.fixture
def failing_generation_model() -> FakeModel:
    return FakeModel(generate_error=GenerationError("Generation service responded 500: boom"))

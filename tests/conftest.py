"""Shared pytest fixtures for the ingestion test suite."""

from __future__ import annotations

import asyncio
import hashlib
import time
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.config.policies import ChunkingPolicy, IngestionPolicy
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import BlockKind, BlockMetadata, Chunk, ChunkMetadata, ExtractedBlock
from src.models.ingestion import RetrievedChunk
from src.pipeline.progress_reporter import ProgressReporter
from src.utils.errors import RAGError

EMBEDDING_DIM = 768


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_block(
    text: str,
    kind: BlockKind = BlockKind.TEXT,
    source_filename: str = "report.pdf",
    **metadata: Any,
) -> ExtractedBlock:
    """Build an :class:`ExtractedBlock` with sensible metadata defaults."""
    return ExtractedBlock(
        text=text,
        kind=kind,
        metadata=BlockMetadata(source_filename=source_filename, extraction_type=kind, **metadata),
    )


def make_chunks(count: int, prefix: str = "chunk") -> list[Chunk]:
    """Build *count* distinct, already-sequenced chunks."""
    return [
        Chunk(
            text=f"{prefix} {i}: " + "content " * 10,
            metadata=ChunkMetadata(
                source_filename="report.pdf",
                extraction_type=BlockKind.TEXT,
                sequential_id=i,
                total_document_chunks=count,
            ),
        )
        for i in range(count)
    ]


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit-length vector by hashing *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(byte - 127.5) / 127.5 for byte in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider with scriptable failures.

    Parameters
    ----------
    fail_always:
        Texts (or substrings) whose every embedding call raises.
    fail_first_attempts:
        Mapping of text substring -> number of leading calls that raise
        before the text embeds successfully.
    delay_s:
        Real ``asyncio.sleep`` before each call, for timeout tests.
    dimension:
        Length of the returned vectors.
    """

    def __init__(
        self,
        fail_always: set[str] | None = None,
        fail_first_attempts: dict[str, int] | None = None,
        delay_s: float = 0.0,
        dimension: int = EMBEDDING_DIM,
        error: Exception | None = None,
    ) -> None:
        self.fail_always = fail_always or set()
        self.fail_first_attempts = dict(fail_first_attempts or {})
        self.delay_s = delay_s
        self.dimension = dimension
        self.error = error
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        if any(marker in text for marker in self.fail_always):
            raise RAGError(message="embedding service overloaded", provider_name="mock-embedding")
        for marker, remaining in self.fail_first_attempts.items():
            if marker in text and remaining > 0:
                self.fail_first_attempts[marker] = remaining - 1
                raise RAGError(message="transient embedding failure", provider_name="mock-embedding")
        return hash_to_vector(text, self.dimension)

    def calls_for(self, marker: str) -> int:
        return sum(1 for text in self.calls if marker in text)

    def get_dimension(self) -> int:
        return self.dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store backed by a dict keyed by record id."""

    def __init__(self, delay_s: float = 0.0) -> None:
        self.records: dict[str, tuple[str | None, Chunk, list[float]]] = {}
        self.delay_s = delay_s
        self.delete_calls: list[str] = []

    async def add_chunk(self, document_id: str | None, chunk: Chunk, embedding: list[float]) -> str:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        record_id = chunk.metadata.chunk_id or f"{document_id}-{chunk.metadata.sequential_id}"
        self.records[record_id] = (document_id, chunk, embedding)
        return record_id

    async def query(
        self,
        query_embedding: list[float],
        k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        scored: list[RetrievedChunk] = []
        for document_id, chunk, embedding in self.records.values():
            metadata = chunk.metadata.model_dump(mode="json")
            metadata["document_id"] = document_id
            if metadata_filter and any(metadata.get(key) != value for key, value in metadata_filter.items()):
                continue
            similarity = sum(a * b for a, b in zip(query_embedding, embedding, strict=True))
            scored.append(
                RetrievedChunk(
                    content=chunk.text,
                    metadata=metadata,
                    similarity=max(0.0, min(1.0, similarity)),
                )
            )
        scored.sort(key=lambda rc: rc.similarity, reverse=True)
        return scored[:k]

    async def count_by_document(self, document_id: str) -> int:
        return sum(1 for doc, _, _ in self.records.values() if doc == document_id)

    async def delete_by_document(self, document_id: str) -> int:
        self.delete_calls.append(document_id)
        doomed = [rid for rid, (doc, _, _) in self.records.items() if doc == document_id]
        for rid in doomed:
            del self.records[rid]
        return len(doomed)

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


class SlowCollection:
    """Delegates to a real ChromaDB collection but holds every upsert for *delay_s*."""

    def __init__(self, inner: Any, delay_s: float) -> None:
        self._inner = inner
        self._delay_s = delay_s

    def upsert(self, **kwargs: Any) -> None:
        time.sleep(self._delay_s)
        self._inner.upsert(**kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Mock IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    """Mock IVectorStoreProvider backed by an in-memory dict."""
    return MockVectorStore()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Sleep replacement that records requested delays and returns at once."""
    return AsyncMock(return_value=None)


@pytest.fixture
def ingestion_policy() -> IngestionPolicy:
    """Default ingestion policy (3 attempts, 768 dims, final pass for <= 10 failures)."""
    return IngestionPolicy()


@pytest.fixture
def chunking_policy() -> ChunkingPolicy:
    return ChunkingPolicy()


@pytest.fixture
def progress() -> ProgressReporter:
    return ProgressReporter(interval=5)


@pytest.fixture
def sample_text_2000() -> str:
    """About 2,000 characters of distinct sentences, each shorter than 50 characters."""
    sentences = [f"Revenue line {i} grew by {i + 3} percent. " for i in range(80)]
    text = "".join(sentences)
    return text[:2000]


@pytest.fixture
def sample_hebrew_table() -> str:
    """Short three-row Hebrew invoice table (~200 characters)."""
    return (
        "תיאור | כמות | מחיר | סכום\n"
        "מחשב נייד | 2 | 3500 ₪ | 7000 ₪\n"
        "מסך 27 אינץ' | 3 | 1200 ₪ | 3600 ₪"
    )

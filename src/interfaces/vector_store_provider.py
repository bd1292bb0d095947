"""Abstract base class for vector-store service providers.

Defines the contract for storing, querying, and removing embedded document
chunks.  Implementations may wrap ChromaDB (local/free), pgvector, Qdrant,
or any other vector database.  The ingestion core only ever talks to this
interface, so the backend can be swapped without touching it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.document import Chunk
from src.models.ingestion import RetrievedChunk


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the ingestion pipeline.

    All query and mutation methods are async to support network-backed stores
    without blocking the event loop.

    **Filter syntax** (passed via *metadata_filter* in :meth:`query`): a flat
    ``{field: value}`` dict matched for equality against stored chunk
    metadata, e.g. ``{"document_id": "doc-1", "is_table_chunk": True}``.
    Concrete providers translate it into their backend's query language.
    """

    @abstractmethod
    async def add_chunk(self, document_id: str | None, chunk: Chunk, embedding: list[float]) -> str:
        """Store one pre-embedded chunk.

        Writing the same chunk twice (same ``metadata.chunk_id``) must
        overwrite the first record, so an attempt that timed out after the
        write landed can be retried safely.

        Parameters
        ----------
        document_id:
            Owning document; ``None`` stores an orphan chunk.
        chunk:
            The chunk with its ingestion-stamped metadata.
        embedding:
            Pre-computed embedding vector for ``chunk.text``.

        Returns
        -------
        str
            The id of the stored record.

        Raises
        ------
        src.utils.errors.RAGError
            If the write fails.
        """

    @abstractmethod
    async def query(
        self,
        query_embedding: list[float],
        k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Return the *k* stored chunks most similar to *query_embedding*.

        Results are ranked by similarity (descending, in ``[0, 1]``).
        """

    @abstractmethod
    async def count_by_document(self, document_id: str) -> int:
        """Return how many chunks are stored for *document_id*."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk stored for *document_id*.

        Returns
        -------
        int
            Number of chunks deleted.  ``0`` when none exist.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector-store provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the vector store is reachable and operational."""

"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local, free, and
Python-native — no external service required.

ChromaDB's client is synchronous; every call is moved off the event loop
with :func:`asyncio.to_thread` so the ingestor's ``asyncio.wait_for``
timeouts stay effective while a write is in flight.  A timed-out or
cancelled caller cannot stop the worker thread, so each write is shielded
and tracked per document; :meth:`ChromaDBProvider.delete_by_document`
waits for those writes before deleting, and a rollback never races a late
upsert.
"""

from __future__ import annotations

import asyncio
import json
import os
from enum import Enum
from typing import Any

# Disable ChromaDB telemetry before importing chromadb: some chromadb
# releases ship a PostHog client that errors on every capture() call.
# The Settings(anonymized_telemetry=False) passed to PersistentClient
# below is the authoritative switch; the env var covers import-time code.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import Chunk
from src.models.ingestion import RetrievedChunk, StoredChunkRecord
from src.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    The ingestor always passes pre-computed embeddings to ``add_chunk()``
    and queries with pre-computed vectors, so ChromaDB's built-in embedding
    is never invoked.  Without this, ChromaDB downloads and loads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Embeddings are pre-computed; ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory ChromaDB persists the collection to.
    collection_name:
        Collection holding every document's chunks.
    embedding_dimension:
        Dimension every stored vector must have.  An existing collection
        built with a different dimension is rejected at startup.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "document_chunks",
        embedding_dimension: int = 768,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._embedding_dimension = embedding_dimension
        # Upserts still running in a worker thread, keyed by document id.
        self._in_flight: dict[str | None, set[asyncio.Task]] = {}
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Newer ChromaDB versions enforce that the embedding function must
        # match the one persisted in the collection.  A collection created
        # with the default function rejects _NoopEmbeddingFunction with a
        # ValueError; opening it without one is fine because every vector
        # is pre-computed anyway.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Verify the configured dimension matches vectors already stored.

        Peeks at a single stored vector and compares its length to the
        expected dimension.  A mismatch means every query returns garbage,
        so fail loud and fast.
        """
        try:
            collection_count = self._collection.count()
            if collection_count == 0:
                return

            sample = self._collection.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is None or len(embeddings) == 0:
                return

            stored_dim = len(embeddings[0])
            if stored_dim != self._embedding_dimension:
                logger.error(
                    "embedding_dimension_mismatch",
                    stored_dim=stored_dim,
                    expected_dim=self._embedding_dimension,
                    collection=self._collection_name,
                )
                raise RAGError(
                    message=(
                        f"Embedding dimension mismatch: collection {self._collection_name!r} "
                        f"has {stored_dim}-dim vectors but {self._embedding_dimension} "
                        "were configured. Use the embedding model the collection was built with."
                    ),
                    provider_name=self.get_provider_name(),
                )

            logger.info(
                "embedding_dimension_validated",
                dimension=stored_dim,
                stored_chunks=collection_count,
            )
        except RAGError:
            raise
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunk(self, document_id: str | None, chunk: Chunk, embedding: list[float]) -> str:
        """Upsert one pre-embedded chunk; the record id is the chunk's ``chunk_id``.

        The worker thread finishes even when the caller is cancelled (for
        example by ``asyncio.wait_for``); the write stays tracked until it
        lands so :meth:`delete_by_document` can wait for it.
        """
        record = self._build_record(document_id, chunk, embedding)

        write = asyncio.ensure_future(
            asyncio.to_thread(
                self._collection.upsert,
                ids=[record.id],
                embeddings=[record.embedding],
                documents=[record.content],
                metadatas=[record.metadata],
            )
        )
        pending = self._in_flight.setdefault(document_id, set())
        pending.add(write)
        write.add_done_callback(lambda task: self._forget_write(document_id, task))

        try:
            await asyncio.shield(write)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB add_chunk failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("chromadb_add_chunk", record_id=record.id, length=len(record.content))
        return record.id

    async def query(
        self,
        query_embedding: list[float],
        k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Perform a cosine-similarity search against the collection."""
        try:
            count = await asyncio.to_thread(self._collection.count)
            if count == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_embedding],
                "n_results": min(k, count),
            }
            where_clause = self._translate_filter(metadata_filter)
            if where_clause:
                kwargs["where"] = where_clause

            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        retrieved = [
            RetrievedChunk(
                content=text,
                metadata=self._metadata_from_store(meta or {}),
                similarity=max(0.0, min(1.0, 1.0 - distance)),
            )
            for text, meta, distance in zip(documents, metadatas, distances, strict=True)
        ]
        retrieved.sort(key=lambda rc: rc.similarity, reverse=True)

        logger.info(
            "chromadb_query",
            results_count=len(retrieved),
            top_score=retrieved[0].similarity if retrieved else 0.0,
        )
        return retrieved

    async def count_by_document(self, document_id: str) -> int:
        try:
            existing = await asyncio.to_thread(
                self._collection.get, where={"document_id": document_id}, include=[]
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB count_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks stored for the given document.

        Writes for the document that are still in flight are awaited first,
        so none of them can land after the delete.
        """
        await self._drain_writes(document_id)
        count = await self.count_by_document(document_id)
        if count == 0:
            return 0

        try:
            await asyncio.to_thread(self._collection.delete, where={"document_id": document_id})
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _drain_writes(self, document_id: str) -> None:
        pending = list(self._in_flight.get(document_id, ()))
        if not pending:
            return
        logger.info("chromadb_waiting_for_writes", document_id=document_id, pending=len(pending))
        await asyncio.gather(*pending, return_exceptions=True)

    def _forget_write(self, document_id: str | None, task: asyncio.Task) -> None:
        pending = self._in_flight.get(document_id)
        if pending is not None:
            pending.discard(task)
            if not pending:
                del self._in_flight[document_id]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("chromadb_write_failed", document_id=document_id, error=str(task.exception()))

    def _build_record(self, document_id: str | None, chunk: Chunk, embedding: list[float]) -> StoredChunkRecord:
        """Assemble the row persisted for *chunk*."""
        record_id = chunk.metadata.chunk_id or f"{document_id}-{chunk.metadata.sequential_id}"
        record = StoredChunkRecord(
            id=record_id,
            document_id=document_id,
            content=chunk.text,
            embedding=embedding,
        )
        metadata = self._chunk_to_metadata(chunk, document_id)
        metadata["created_at"] = record.created_at.isoformat()
        return record.model_copy(update={"metadata": metadata})

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk, document_id: str | None) -> dict[str, str | int | float | bool]:
        """Flatten chunk metadata into a ChromaDB-compatible dict.

        ChromaDB metadata values must be str, int, float, or bool, and may
        not be ``None``.  Unset fields are omitted, enums are stored by
        value, and the open-ended ``extra`` map is serialized as JSON.
        """
        meta: dict[str, str | int | float | bool] = {}
        for key, value in chunk.metadata.model_dump(exclude={"extra"}).items():
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            meta[key] = value

        if chunk.metadata.extra:
            meta["extra"] = json.dumps(chunk.metadata.extra, ensure_ascii=False, default=str)
        if document_id is not None:
            meta["document_id"] = document_id
        return meta

    @staticmethod
    def _metadata_from_store(meta: dict[str, Any]) -> dict[str, Any]:
        """Reverse :meth:`_chunk_to_metadata` for the ``extra`` field."""
        restored = dict(meta)
        raw_extra = restored.get("extra")
        if isinstance(raw_extra, str):
            try:
                restored["extra"] = json.loads(raw_extra)
            except ValueError:
                logger.warning("chromadb_extra_not_json", chunk_id=restored.get("chunk_id"))
        return restored

    @staticmethod
    def _translate_filter(metadata_filter: dict[str, Any] | None) -> dict[str, Any] | None:
        """Translate a flat equality filter into a ChromaDB ``where`` clause."""
        if not metadata_filter:
            return None
        clauses = [{key: value} for key, value in metadata_filter.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **chunk -> guard -> embed + store -> verdict**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the chunker, the embedding ingestor and the vector store
without any of them knowing about each other.  It is the one place that
decides what happens to a document as a whole:

    1. AdaptiveChunker -- splits extracted blocks into deduplicated chunks
    2. Chunk ceiling -- rejects oversized documents before anything is stored
    3. EmbeddingIngestor -- embeds and stores chunk by chunk, under an
       optional wall-clock budget
    4. Rollback -- a failed or aborted run leaves no chunks behind

All dependencies are injected via constructor (Dependency Injection), so
providers can be swapped (e.g. OpenAI -> Ollama) without changing this class.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from src.config.policies import IngestionPolicy
from src.models.ingestion import DocumentIngestionResult, IngestionReport, RetrievedChunk
from src.utils.errors import DocumentTooLargeError, IngestionFailedError, IngestionTimeoutError
from src.utils.logging import bind_document_context

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.models.document import ExtractedBlock
    from src.services.ingestion.chunker import AdaptiveChunker
    from src.services.ingestion.embedding_ingestor import EmbeddingIngestor

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Orchestrates chunking, embedding, storage and rollback for one document.

    Parameters
    ----------
    chunker:
        Splits extracted blocks into chunks.
    ingestor:
        Embeds and stores chunks with per-chunk retries.
    embedding_provider:
        Embeds search queries in :meth:`search`.
    vector_store:
        Target of rollbacks and searches.
    policy:
        Supplies the chunk ceiling and the overall time budget.
    """

    def __init__(
        self,
        chunker: AdaptiveChunker,
        ingestor: EmbeddingIngestor,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        policy: IngestionPolicy | None = None,
    ) -> None:
        self._chunker = chunker
        self._ingestor = ingestor
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._policy = policy or IngestionPolicy()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(
        self,
        blocks: list[ExtractedBlock],
        document_id: str,
        base_size: int = 500,
        base_overlap: int = 100,
    ) -> DocumentIngestionResult:
        """Chunk, embed and store one document.

        Parameters
        ----------
        blocks:
            The document's extracted blocks in order.
        document_id:
            Id of the document record the chunks belong to.
        base_size, base_overlap:
            Passed through to the chunker (used when adaptive sizing is off).

        Returns
        -------
        DocumentIngestionResult
            Chunking statistics, the ingestion report and, when the run was
            accepted with missing chunks, a user-facing warning.

        Raises
        ------
        DocumentTooLargeError
            The document produced more chunks than one upload may store.
            Nothing was stored.
        IngestionFailedError
            Too few chunks were stored.  Stored chunks were rolled back.
        IngestionTimeoutError
            The run exceeded ``ingestion_budget_s``.  Stored chunks were
            rolled back.
        """
        with bind_document_context(document_id):
            chunking = self._chunker.chunk_with_stats(blocks, base_size, base_overlap, document_id=document_id)
            chunks = chunking.chunks

            result_fields: dict[str, Any] = {
                "document_id": document_id,
                "total_chunks": len(chunks),
                "chunk_size": chunking.chunk_size,
                "overlap": chunking.overlap,
                "coverage": chunking.coverage,
                "duplicates_dropped": chunking.duplicates_dropped,
            }

            if not chunks:
                logger.warning("document_produced_no_chunks", blocks=len(blocks))
                return DocumentIngestionResult(
                    **result_fields,
                    report=IngestionReport(document_id=document_id),
                )

            max_chunks = self._policy.max_chunks_per_document
            if len(chunks) > max_chunks:
                logger.warning("document_too_large", chunks=len(chunks), max_chunks=max_chunks)
                raise DocumentTooLargeError(chunk_count=len(chunks), max_chunks=max_chunks)

            budget_s = self._policy.ingestion_budget_s
            try:
                if budget_s is None:
                    report = await self._ingestor.ingest(chunks, document_id)
                else:
                    report = await asyncio.wait_for(self._ingestor.ingest(chunks, document_id), timeout=budget_s)
            except asyncio.TimeoutError:
                logger.error("ingestion_budget_exceeded", budget_s=budget_s)
                await self._rollback(document_id, reason="timeout")
                raise IngestionTimeoutError(budget_s=budget_s, document_id=document_id) from None
            except IngestionFailedError:
                await self._rollback(document_id, reason="failed")
                raise

            warning = report.summary() if report.has_missing_content else None
            if warning:
                logger.warning("document_ingested_with_missing_content", failed=report.failed)
            else:
                logger.info("document_ingested", chunks=report.total, verdict=report.verdict.value)

            return DocumentIngestionResult(**result_fields, report=report, warning=warning)

    async def search(
        self,
        query: str,
        k: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Embed *query* and return the *k* most similar stored chunks."""
        query_embedding = await self._embedding_provider.embed_single(query)
        results = await self._vector_store.query(query_embedding, k=k, metadata_filter=metadata_filter)
        logger.debug("search_complete", query_length=len(query), results=len(results))
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _rollback(self, document_id: str, reason: str) -> int:
        """Delete every chunk stored for *document_id*; returns the count.

        A failing delete is logged, not raised: the caller is already
        propagating the error that triggered the rollback.
        """
        try:
            deleted = await self._vector_store.delete_by_document(document_id)
        except Exception as exc:
            logger.error("rollback_failed", reason=reason, error=str(exc))
            return 0
        logger.info("rollback_complete", reason=reason, deleted_chunks=deleted)
        return deleted

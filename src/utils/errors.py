"""Custom exception hierarchy for the document ingestion core.

All application exceptions inherit from :class:`DocIngestError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb") caused the failure.

The hierarchy is organized by pipeline stage:

    DocIngestError  (base -- catch-all for any ingestion error)
    +-- ConfigurationError       (startup / missing config; never retried)
    +-- ProviderUnavailableError (external service down / unreachable)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- RAGError                 (embedding or vector-store failure)
    |   +-- EmbeddingTimeoutError
    |   +-- PersistTimeoutError
    |   +-- EmbeddingDimensionError
    +-- ChunkingError            (a single block could not be split)
    +-- DocumentTooLargeError    (chunk ceiling exceeded before storage)
    +-- IngestionFailedError     (run-level success rate below the floor)
    +-- IngestionTimeoutError    (overall wall-clock budget exceeded)

Only the last three escape the ingestion core.  Everything under
:class:`RAGError` is handled per chunk and surfaces as a count in the
:class:`~src.models.ingestion.IngestionReport`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.models.ingestion import IngestionReport


class DocIngestError(Exception):
    """Base exception for all ingestion errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets
    for log scanning, e.g. ``[chromadb] upsert failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration / provider errors
# ---------------------------------------------------------------------------

class ConfigurationError(DocIngestError):
    """Raised when configuration is invalid or missing.

    The ingestor tags this as a *fatal* attempt outcome: retrying a chunk
    cannot fix a missing API key.
    """

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(DocIngestError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(DocIngestError):
    """Raised when an embedding API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding / vector-store errors (per chunk, retried)
# ---------------------------------------------------------------------------

class RAGError(DocIngestError):
    """Raised when an embedding or vector-store operation fails."""

    def __init__(
        self,
        message: str = "RAG pipeline operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingTimeoutError(RAGError):
    """Raised when an embedding call does not finish within its timeout."""

    def __init__(
        self,
        message: str = "Embedding generation timeout",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistTimeoutError(RAGError):
    """Raised when a vector-store insert does not finish within its timeout."""

    def __init__(
        self,
        message: str = "Database insertion timeout",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingDimensionError(RAGError):
    """Raised when an embedding has the wrong number of dimensions."""

    def __init__(
        self,
        message: str = "Embedding has unexpected dimensionality",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Chunking errors
# ---------------------------------------------------------------------------

class ChunkingError(DocIngestError):
    """Raised when a single extracted block cannot be split."""

    def __init__(
        self,
        message: str = "Block could not be split into chunks",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Run-level errors (propagate to the caller)
# ---------------------------------------------------------------------------

class DocumentTooLargeError(DocIngestError):
    """Raised when chunking produced more chunks than one upload may store."""

    def __init__(
        self,
        chunk_count: int,
        max_chunks: int,
    ) -> None:
        self.chunk_count = chunk_count
        self.max_chunks = max_chunks
        super().__init__(
            message=(
                f"Document too large: {chunk_count} chunks created. "
                f"Maximum {max_chunks} chunks allowed per document."
            ),
        )


class IngestionFailedError(DocIngestError):
    """Raised when too few chunks were stored for the document to be usable.

    The final :class:`~src.models.ingestion.IngestionReport` is attached so
    the caller can roll back partially created document records and show
    the user how much content made it.
    """

    def __init__(self, report: IngestionReport) -> None:
        self.report = report
        percent = report.success_rate * 100
        super().__init__(
            message=(
                f"Embedding processing failed: only {percent:.1f}% success rate "
                f"({report.succeeded}/{report.total} chunks). The document may be "
                "too complex or the embedding service may be overloaded. Try: "
                "1) retrying later, 2) using a simpler document format, "
                "3) splitting the document into smaller parts."
            ),
        )


class IngestionTimeoutError(DocIngestError):
    """Raised when a whole ingestion run exceeds the caller's wall-clock budget."""

    def __init__(self, budget_s: float, document_id: str | None = None) -> None:
        self.budget_s = budget_s
        self.document_id = document_id
        super().__init__(
            message=(
                f"Ingestion of document {document_id!r} exceeded the "
                f"{budget_s:.0f}s processing budget. Retry later or upload a "
                "smaller document."
            ),
        )

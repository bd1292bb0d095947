"""Utility modules for the ingestion core.

- **errors** -- Domain-specific exception hierarchy rooted at DocIngestError;
  each pipeline stage raises its own subclass so callers can handle failures
  granularly without broad ``except Exception`` blocks.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ChunkingError,
    ConfigurationError,
    DocIngestError,
    DocumentTooLargeError,
    EmbeddingDimensionError,
    EmbeddingTimeoutError,
    IngestionFailedError,
    IngestionTimeoutError,
    PersistTimeoutError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import bind_document_context, configure_logging, get_logger

__all__ = [
    "ChunkingError",
    "ConfigurationError",
    "DocIngestError",
    "DocumentTooLargeError",
    "EmbeddingDimensionError",
    "EmbeddingTimeoutError",
    "IngestionFailedError",
    "IngestionTimeoutError",
    "PersistTimeoutError",
    "ProviderUnavailableError",
    "RAGError",
    "RateLimitError",
    "bind_document_context",
    "configure_logging",
    "get_logger",
]

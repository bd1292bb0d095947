"""Typed chunking and ingestion policies.

The raw configuration dict produced by :func:`src.config.loader.load_config`
is validated into these frozen models once at startup; services receive
the policy objects, never the dict.  Every default mirrors the values the
pipeline was tuned with against the Gemini embedding API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChunkingPolicy(BaseModel):
    """Knobs for :class:`~src.services.ingestion.chunker.AdaptiveChunker`."""

    model_config = ConfigDict(frozen=True)

    # When False the caller's base_size / base_overlap are used verbatim.
    adaptive: bool = True
    # Complex content (tables, OCR, RTL) clamps to at most this size...
    complex_max_chunk_size: int = Field(default=900, gt=0)
    # ...and at least this overlap.
    complex_min_overlap: int = Field(default=100, ge=0)
    # Tables at or below this many characters are never split.
    table_min_whole_chars: int = Field(default=1000, ge=0)
    # Tables whose length is within this factor of the chunk size stay whole.
    table_whole_factor: float = Field(default=1.5, gt=0)
    table_max_whole_rows: int = Field(default=5, ge=1)
    table_overlap_rows: int = Field(default=1, ge=0)
    table_min_keyword_hits: int = Field(default=2, ge=1)
    progress_interval: int = Field(default=5, ge=1)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ChunkingPolicy:
        return cls(**(config.get("chunking") or {}))


class IngestionPolicy(BaseModel):
    """Knobs for :class:`~src.services.ingestion.embedding_ingestor.EmbeddingIngestor`."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    embed_timeout_s: float = Field(default=20.0, gt=0)
    persist_timeout_s: float = Field(default=15.0, gt=0)
    # Linear backoff: attempt_number * retry_backoff_s.
    retry_backoff_s: float = Field(default=1.0, ge=0)
    # Pause after an unexpected error escapes a chunk.
    unexpected_error_pause_s: float = Field(default=1.0, ge=0)
    final_retry_limit: int = Field(default=10, ge=0)
    final_retry_delay_s: float = Field(default=2.0, ge=0)
    final_embed_timeout_s: float = Field(default=30.0, gt=0)
    min_success_rate: float = Field(default=0.70, ge=0.0, le=1.0)
    embedding_dimension: int = Field(default=768, gt=0)
    progress_interval: int = Field(default=5, ge=1)
    # (max chunk count, delay seconds) pairs, checked in order;
    # rate_limit_max_delay_s applies above every listed count.
    rate_limit_tiers: list[tuple[int, float]] = Field(
        default_factory=lambda: [(20, 0.05), (100, 0.075), (300, 0.10)]
    )
    rate_limit_max_delay_s: float = Field(default=0.15, ge=0)
    # Caller-level limits (enforced by IngestionService).
    max_chunks_per_document: int = Field(default=500, ge=1)
    ingestion_budget_s: float | None = Field(default=None, gt=0)

    def inter_chunk_delay(self, total_chunks: int) -> float:
        """Seconds to wait between chunks for a run of *total_chunks*."""
        for max_count, delay in self.rate_limit_tiers:
            if total_chunks <= max_count:
                return delay
        return self.rate_limit_max_delay_s

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> IngestionPolicy:
        return cls(**(config.get("ingestion") or {}))

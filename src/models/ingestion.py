"""Ingestion run models: per-attempt tags, per-chunk outcomes, run reports.

The embedding ingestor never lets an exception cross a chunk boundary.
Instead each attempt is reduced to an :class:`AttemptStatus` tag, each
chunk to an :class:`IngestionOutcome`, and the whole run to an
:class:`IngestionReport` whose :class:`IngestionVerdict` drives the
caller's commit / rollback decision.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Verdict thresholds on the success rate (fractions, inclusive lower bounds).
EXCELLENT_THRESHOLD = 0.95
GOOD_THRESHOLD = 0.85
ACCEPTABLE_THRESHOLD = 0.70


class AttemptStatus(str, Enum):  # noqa: UP042
    """Tagged outcome of one embed + persist attempt.

    ``RETRYABLE`` failures are retried with backoff; ``FATAL`` ones stop
    retrying the chunk at once (the chunk is still isolated, the run goes on).
    """

    SUCCEEDED = "succeeded"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class IngestionVerdict(str, Enum):  # noqa: UP042
    """Graduated acceptance of an ingestion run."""

    PERFECT = "perfect"
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    FAILED = "failed"

    @classmethod
    def from_success_rate(
        cls,
        success_rate: float,
        all_succeeded: bool = False,
        acceptable_threshold: float = ACCEPTABLE_THRESHOLD,
    ) -> IngestionVerdict:
        """Map a success rate in ``[0, 1]`` to a verdict.

        *acceptable_threshold* is the lowest rate still accepted.  Rates at
        or above ``GOOD_THRESHOLD`` are always at least ``GOOD``.
        """
        if all_succeeded:
            return cls.PERFECT
        if success_rate >= EXCELLENT_THRESHOLD:
            return cls.EXCELLENT
        if success_rate >= GOOD_THRESHOLD:
            return cls.GOOD
        if success_rate >= min(acceptable_threshold, GOOD_THRESHOLD):
            return cls.ACCEPTABLE
        return cls.FAILED


class IngestionOutcome(BaseModel):
    """Result of processing one chunk (ephemeral, aggregated into the report)."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0, description="Position of the chunk in the input sequence.")
    succeeded: bool
    attempts: int = Field(default=0, ge=0)
    error: str | None = None
    status: AttemptStatus = AttemptStatus.SUCCEEDED


class IngestionReport(BaseModel):
    """Summary of one :meth:`EmbeddingIngestor.ingest` run."""

    model_config = ConfigDict(frozen=True)

    document_id: str | None = None
    total: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped_empty: int = Field(default=0, ge=0, description="Blank chunks counted as succeeded.")
    retry_count: int = Field(default=0, ge=0, description="Failed attempts across the run.")
    final_retry_attempted: int = Field(default=0, ge=0)
    final_retry_recovered: int = Field(default=0, ge=0)
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    elapsed_ms: int = Field(default=0, ge=0)
    verdict: IngestionVerdict = IngestionVerdict.PERFECT
    failed_chunks: list[IngestionOutcome] = Field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.verdict is not IngestionVerdict.FAILED

    @property
    def has_missing_content(self) -> bool:
        return self.failed > 0

    def summary(self) -> str:
        """One-line, user-facing description of the run."""
        percent = self.success_rate * 100
        if self.verdict is IngestionVerdict.PERFECT:
            return f"All {self.total} chunks processed and stored."
        if self.verdict is IngestionVerdict.EXCELLENT:
            return f"{percent:.1f}% of chunks stored; the document is fully searchable."
        if self.verdict is IngestionVerdict.GOOD:
            return f"{percent:.1f}% of chunks stored; the document is mostly searchable."
        if self.verdict is IngestionVerdict.ACCEPTABLE:
            return (
                f"{percent:.1f}% of chunks stored ({self.failed} failed); "
                "the document is searchable but some content may be missing."
            )
        return f"Only {percent:.1f}% of chunks stored; significant content is missing."


class StoredChunkRecord(BaseModel):
    """A row in the vector store (owned by the vector-store collaborator)."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str | None = None
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class RetrievedChunk(BaseModel):
    """A similarity-search hit returned by the vector store."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)


class DocumentIngestionResult(BaseModel):
    """What :class:`IngestionService` hands back to the upload handler."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    total_chunks: int = Field(default=0, ge=0)
    chunk_size: int = Field(default=0, ge=0)
    overlap: int = Field(default=0, ge=0)
    coverage: float = Field(default=0.0, ge=0.0)
    duplicates_dropped: int = Field(default=0, ge=0)
    report: IngestionReport
    warning: str | None = None

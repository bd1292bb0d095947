"""Resilient per-chunk embedding and storage.

Embeds each chunk of a document and writes it to the vector store, one
chunk at a time.  The embedding API is the weak link: it rate-limits,
times out and occasionally returns garbage.  The ingestor therefore
treats every chunk as an isolated unit of work:

# ─── PER-CHUNK FLOW ───────────────────────────────────────────────────
#
#   for each chunk (sequentially, with a rate-limit pause in between):
#       attempt 1..N:  embed (timeout) → check dimension → persist (timeout)
#                      failure → classify_failure() → RETRYABLE | FATAL
#                      RETRYABLE → back off attempt × 1s, try again
#                      FATAL     → give up on this chunk now
#       still failing → record the failure, move on to the next chunk
#
#   if a handful of chunks failed → one last attempt each, after a pause,
#   with a longer embedding timeout
#
#   success rate → IngestionVerdict; below the floor → IngestionFailedError
# ──────────────────────────────────────────────────────────────────────

No exception raised for a single chunk ever stops the run.  Only the
run-level verdict can fail it.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from src.config.policies import IngestionPolicy
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import Chunk
from src.models.ingestion import (
    AttemptStatus,
    IngestionOutcome,
    IngestionReport,
    IngestionVerdict,
)
from src.pipeline.progress_reporter import ProgressReporter, ProgressSnapshot, ProgressStage
from src.utils.errors import (
    ConfigurationError,
    EmbeddingDimensionError,
    EmbeddingTimeoutError,
    IngestionFailedError,
    PersistTimeoutError,
)
from src.utils.logging import preview

logger = structlog.get_logger(logger_name=__name__)

SleepFn = Callable[[float], Awaitable[object]]
ClockFn = Callable[[], float]


def classify_failure(exc: BaseException) -> AttemptStatus:
    """Reduce an exception raised by one attempt to an :class:`AttemptStatus` tag.

    Configuration errors (missing or rejected credentials) cannot be fixed
    by retrying and are ``FATAL``.  Everything else (timeouts, rate limits,
    dimension mismatches, transport errors) is ``RETRYABLE``.
    """
    if isinstance(exc, ConfigurationError):
        return AttemptStatus.FATAL
    return AttemptStatus.RETRYABLE


@dataclass
class _FailedChunk:
    chunk: Chunk
    outcome: IngestionOutcome


class EmbeddingIngestor:
    """Embeds and stores a document's chunks with per-chunk isolation and retries.

    Parameters
    ----------
    embedding_provider:
        Produces one embedding per chunk via ``embed_single``.
    vector_store:
        Stores each embedded chunk via ``add_chunk``.
    policy:
        Attempts, timeouts, backoff, rate-limit tiers and the success floor.
    progress:
        Receives a snapshot every ``policy.progress_interval`` chunks and at
        the end of each pass.
    sleep:
        Awaitable sleep used for backoff and rate-limit pauses.  Tests inject
        a no-op so a run with retries finishes instantly.
    clock:
        Monotonic clock used for elapsed time and rate.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        policy: IngestionPolicy | None = None,
        progress: ProgressReporter | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._policy = policy or IngestionPolicy()
        self._progress = progress or ProgressReporter(interval=self._policy.progress_interval)
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, chunks: list[Chunk], document_id: str | None = None) -> IngestionReport:
        """Embed and store *chunks* for *document_id*.

        Parameters
        ----------
        chunks:
            Chunks in document order, as produced by the chunker.
        document_id:
            Owning document.  Stamped on every stored chunk.

        Returns
        -------
        IngestionReport
            Counts, retry statistics and the verdict of the run.

        Raises
        ------
        IngestionFailedError
            If the success rate ends below the acceptance floor.  The
            report is attached to the exception.
        """
        policy = self._policy
        started = self._clock()
        total = len(chunks)

        if total == 0:
            logger.info("ingestion_skipped_no_chunks")
            return IngestionReport(document_id=document_id)

        # Record ids must be unique across documents even for anonymous runs.
        id_prefix = document_id or uuid.uuid4().hex
        delay = policy.inter_chunk_delay(total)

        logger.info(
            "ingestion_started",
            total_chunks=total,
            inter_chunk_delay_ms=int(delay * 1000),
            max_attempts=policy.max_attempts,
        )

        succeeded = 0
        skipped_empty = 0
        retry_count = 0
        failures: list[_FailedChunk] = []

        for index, chunk in enumerate(chunks):
            try:
                if not chunk.text.strip():
                    skipped_empty += 1
                    succeeded += 1
                    logger.debug("chunk_skipped_empty", chunk_index=index)
                else:
                    outcome, failed_attempts = await self._ingest_chunk(
                        index, chunk, document_id, id_prefix, total
                    )
                    retry_count += failed_attempts
                    if outcome.succeeded:
                        succeeded += 1
                    else:
                        failures.append(_FailedChunk(chunk=chunk, outcome=outcome))
            except Exception as exc:
                logger.error("chunk_unexpected_error", chunk_index=index, error=str(exc))
                failures.append(
                    _FailedChunk(
                        chunk=chunk,
                        outcome=IngestionOutcome(
                            chunk_index=index,
                            succeeded=False,
                            error=str(exc),
                            status=AttemptStatus.RETRYABLE,
                        ),
                    )
                )
                await self._sleep(policy.unexpected_error_pause_s)

            processed = index + 1
            if self._progress.should_report(processed, total):
                await self._progress.areport(
                    ProgressSnapshot(
                        document_id=document_id,
                        stage=ProgressStage.EMBEDDING,
                        processed=processed,
                        total=total,
                        succeeded=succeeded,
                        elapsed_s=self._clock() - started,
                    )
                )

            if processed < total:
                await self._sleep(delay)

        final_attempted = 0
        final_recovered = 0
        if 1 <= len(failures) <= policy.final_retry_limit:
            failures, final_attempted, final_recovered, final_failed_attempts = await self._final_pass(
                failures, document_id, id_prefix, total
            )
            succeeded += final_recovered
            retry_count += final_failed_attempts
            if final_attempted:
                await self._progress.areport(
                    ProgressSnapshot(
                        document_id=document_id,
                        stage=ProgressStage.FINAL_RETRY,
                        processed=total,
                        total=total,
                        succeeded=succeeded,
                        elapsed_s=self._clock() - started,
                    )
                )

        success_rate = succeeded / total
        verdict = IngestionVerdict.from_success_rate(
            success_rate,
            all_succeeded=not failures,
            acceptable_threshold=policy.min_success_rate,
        )
        report = IngestionReport(
            document_id=document_id,
            total=total,
            succeeded=succeeded,
            failed=len(failures),
            skipped_empty=skipped_empty,
            retry_count=retry_count,
            final_retry_attempted=final_attempted,
            final_retry_recovered=final_recovered,
            success_rate=success_rate,
            elapsed_ms=int((self._clock() - started) * 1000),
            verdict=verdict,
            failed_chunks=[failure.outcome for failure in failures],
        )
        self._log_verdict(report)

        if verdict is IngestionVerdict.FAILED:
            raise IngestionFailedError(report)
        return report

    # ------------------------------------------------------------------
    # Per-chunk processing
    # ------------------------------------------------------------------

    async def _ingest_chunk(
        self,
        index: int,
        chunk: Chunk,
        document_id: str | None,
        id_prefix: str,
        total: int,
    ) -> tuple[IngestionOutcome, int]:
        """Run up to ``max_attempts`` attempts; return the outcome and failed-attempt count."""
        policy = self._policy
        failed_attempts = 0
        error: str | None = None
        status = AttemptStatus.RETRYABLE
        attempt = 0

        while attempt < policy.max_attempts:
            attempt += 1
            stamped = self._stamp(chunk, index, document_id, id_prefix, total, attempt)
            status, error = await self._attempt(stamped, document_id, policy.embed_timeout_s)
            if status is AttemptStatus.SUCCEEDED:
                if attempt > 1:
                    logger.info("chunk_recovered", chunk_index=index, attempt=attempt)
                return IngestionOutcome(chunk_index=index, succeeded=True, attempts=attempt), failed_attempts

            failed_attempts += 1
            logger.warning(
                "chunk_attempt_failed",
                chunk_index=index,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                status=status.value,
                error=error,
                preview=preview(chunk.text),
            )
            if status is AttemptStatus.FATAL:
                break
            if attempt < policy.max_attempts:
                await self._sleep(attempt * policy.retry_backoff_s)

        logger.error("chunk_failed", chunk_index=index, attempts=attempt, error=error)
        outcome = IngestionOutcome(
            chunk_index=index,
            succeeded=False,
            attempts=attempt,
            error=error,
            status=status,
        )
        return outcome, failed_attempts

    async def _final_pass(
        self,
        failures: list[_FailedChunk],
        document_id: str | None,
        id_prefix: str,
        total: int,
    ) -> tuple[list[_FailedChunk], int, int, int]:
        """Give each retryable failure one more attempt with a longer timeout.

        Returns the remaining failures, attempted, recovered and
        failed-attempt counts.
        """
        retryable = [f for f in failures if f.outcome.status is AttemptStatus.RETRYABLE]
        if not retryable:
            return failures, 0, 0, 0

        logger.info("final_retry_started", failed_chunks=len(retryable))
        await self._sleep(self._policy.final_retry_delay_s)

        remaining = [f for f in failures if f.outcome.status is not AttemptStatus.RETRYABLE]
        recovered = 0
        for failure in retryable:
            outcome = failure.outcome
            attempt = outcome.attempts + 1
            try:
                stamped = self._stamp(
                    failure.chunk,
                    outcome.chunk_index,
                    document_id,
                    id_prefix,
                    total,
                    attempt,
                    final_retry=True,
                    original_error=outcome.error,
                )
                status, error = await self._attempt(stamped, document_id, self._policy.final_embed_timeout_s)
            except Exception as exc:
                status, error = AttemptStatus.RETRYABLE, str(exc)
            if status is AttemptStatus.SUCCEEDED:
                recovered += 1
                logger.info("final_retry_recovered", chunk_index=outcome.chunk_index)
                continue

            logger.error("final_retry_failed", chunk_index=outcome.chunk_index, error=error)
            remaining.append(
                _FailedChunk(
                    chunk=failure.chunk,
                    outcome=outcome.model_copy(update={"attempts": attempt, "error": error, "status": status}),
                )
            )

        remaining.sort(key=lambda f: f.outcome.chunk_index)
        return remaining, len(retryable), recovered, len(retryable) - recovered

    async def _attempt(
        self,
        chunk: Chunk,
        document_id: str | None,
        embed_timeout_s: float,
    ) -> tuple[AttemptStatus, str | None]:
        """Embed and persist *chunk* once; never raises."""
        try:
            embedding = await self._embed(chunk.text, embed_timeout_s)
            await self._persist(document_id, chunk, embedding)
        except Exception as exc:
            return classify_failure(exc), str(exc)
        return AttemptStatus.SUCCEEDED, None

    async def _embed(self, text: str, timeout_s: float) -> list[float]:
        provider_name = self._embedding_provider.get_provider_name()
        try:
            embedding = await asyncio.wait_for(self._embedding_provider.embed_single(text), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            raise EmbeddingTimeoutError(provider_name=provider_name) from exc

        expected = self._policy.embedding_dimension
        if not embedding or len(embedding) != expected:
            raise EmbeddingDimensionError(
                message=f"Expected {expected}-dim embedding, got {len(embedding or [])}",
                provider_name=provider_name,
            )
        return embedding

    async def _persist(self, document_id: str | None, chunk: Chunk, embedding: list[float]) -> str:
        try:
            return await asyncio.wait_for(
                self._vector_store.add_chunk(document_id, chunk, embedding),
                timeout=self._policy.persist_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise PersistTimeoutError(provider_name=self._vector_store.get_provider_name()) from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _stamp(
        chunk: Chunk,
        index: int,
        document_id: str | None,
        id_prefix: str,
        total: int,
        attempt: int,
        final_retry: bool = False,
        original_error: str | None = None,
    ) -> Chunk:
        """Return *chunk* with the ingestion fields the store persists."""
        position = chunk.metadata.sequential_id if chunk.metadata.sequential_id is not None else index
        return chunk.with_metadata(
            document_id=document_id,
            chunk_id=f"{id_prefix}-{position}",
            sequential_id=position,
            chunk_length=len(chunk.text),
            total_document_chunks=total,
            attempt_number=attempt,
            processing_timestamp=datetime.now(tz=timezone.utc).isoformat(),
            final_retry=final_retry,
            original_error=original_error,
        )

    @staticmethod
    def _log_verdict(report: IngestionReport) -> None:
        fields = {
            "total": report.total,
            "succeeded": report.succeeded,
            "failed": report.failed,
            "retry_count": report.retry_count,
            "success_rate": round(report.success_rate * 100, 1),
            "elapsed_ms": report.elapsed_ms,
            "verdict": report.verdict.value,
        }
        if report.verdict is IngestionVerdict.FAILED:
            logger.error("ingestion_failed", **fields)
        elif report.verdict is IngestionVerdict.ACCEPTABLE:
            logger.warning("ingestion_partial", summary=report.summary(), **fields)
        else:
            logger.info("ingestion_complete", **fields)

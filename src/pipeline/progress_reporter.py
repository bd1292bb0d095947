"""Ingestion progress reporting with callback-based listener notification.

Chunking and embedding both run long enough on a large upload that the
caller wants periodic feedback: how much of the source text the chunks
cover, how many chunks were stored, how fast, and how long the rest
should take.  This module turns those counters into
:class:`ProgressSnapshot` objects, logs them, and broadcasts them to any
registered listener.

# ─── HOW PROGRESS REPORTING WORKS ─────────────────────────────────────
#
#   AdaptiveChunker   ──report()───→ ProgressReporter ──callback()──→ listener
#   EmbeddingIngestor ──areport()──→                  ──callback()──→ listener
#
#   - Listeners are keyed by document_id (``None`` = every document) so
#     two uploads reporting concurrently never see each other's numbers.
#   - Listener errors are caught and logged: a broken listener can't
#     stop an ingestion run.
#   - Both sync and async callbacks are supported.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from src.utils.logging import get_logger


class ProgressStage(str, Enum):  # noqa: UP042
    """Stage of the ingestion run a snapshot belongs to."""

    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    FINAL_RETRY = "final_retry"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time counters of one run.

    A plain dataclass rather than a Pydantic model: it is built on every
    report interval and never validated or serialized as a whole.
    """

    document_id: str | None
    stage: ProgressStage
    processed: int
    total: int
    succeeded: int = 0
    covered_chars: int = 0
    total_chars: int = 0
    elapsed_s: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.processed == 0:
            return 1.0
        return self.succeeded / self.processed

    @property
    def rate_per_s(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return self.processed / self.elapsed_s

    @property
    def eta_s(self) -> float | None:
        """Seconds until ``total`` is reached at the current rate, or ``None`` if unknown."""
        rate = self.rate_per_s
        if rate <= 0:
            return None
        return max(0, self.total - self.processed) / rate

    @property
    def coverage(self) -> float:
        if self.total_chars == 0:
            return 0.0
        return self.covered_chars / self.total_chars

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return min(100.0, self.processed * 100 / self.total)


ProgressListener = Callable[[ProgressSnapshot], object]


class ProgressReporter:
    """Logs progress snapshots and broadcasts them to registered listeners.

    Parameters
    ----------
    interval:
        Report every *interval* processed items (and always at the end).
    max_tracked_documents:
        How many documents keep a last snapshot for :meth:`get_status`;
        the least recently reported document is forgotten first.
    """

    def __init__(self, interval: int = 5, max_tracked_documents: int = 1000) -> None:
        if interval < 1:
            raise ValueError("interval must be >= 1")
        if max_tracked_documents < 1:
            raise ValueError("max_tracked_documents must be >= 1")
        self._interval = interval
        self._max_tracked = max_tracked_documents
        self._snapshots: dict[str | None, ProgressSnapshot] = {}
        self._listeners: dict[str | None, list[ProgressListener]] = {}
        # Strong references to listener tasks scheduled from sync code.
        self._pending: set[asyncio.Task] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def interval(self) -> int:
        return self._interval

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def should_report(self, processed: int, total: int) -> bool:
        """Return ``True`` every ``interval`` items and once the run is complete."""
        if processed <= 0:
            return False
        return processed % self._interval == 0 or processed >= total

    def report(self, snapshot: ProgressSnapshot) -> None:
        """Record *snapshot* and notify listeners from synchronous code.

        Async listeners are scheduled on the running event loop; with no
        loop running they cannot be awaited and are skipped with a warning.
        """
        self._record(snapshot)
        for callback in self._listeners_for(snapshot.document_id):
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    self._schedule(result, snapshot, callback)
            except Exception as exc:
                self._log_listener_error(snapshot, callback, exc)

    async def areport(self, snapshot: ProgressSnapshot) -> None:
        """Record *snapshot* and notify listeners, awaiting async callbacks."""
        self._record(snapshot)
        for callback in self._listeners_for(snapshot.document_id):
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._log_listener_error(snapshot, callback, exc)

    def register_listener(self, callback: ProgressListener, document_id: str | None = None) -> None:
        """Register *callback* for one document, or for every document when *document_id* is ``None``."""
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                document_id=document_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, callback: ProgressListener, document_id: str | None = None) -> None:
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_status(self, document_id: str | None) -> ProgressSnapshot | None:
        """Return the last snapshot reported for *document_id*, if any."""
        return self._snapshots.get(document_id)

    def clear_status(self, document_id: str | None) -> None:
        """Forget the last snapshot of *document_id* once the caller is done with it."""
        self._snapshots.pop(document_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _record(self, snapshot: ProgressSnapshot) -> None:
        self._snapshots.pop(snapshot.document_id, None)
        self._snapshots[snapshot.document_id] = snapshot
        while len(self._snapshots) > self._max_tracked:
            del self._snapshots[next(iter(self._snapshots))]

        if snapshot.stage is ProgressStage.CHUNKING:
            self._logger.info(
                "chunking_progress",
                stage=snapshot.stage.value,
                processed=snapshot.processed,
                total=snapshot.total,
                coverage=round(snapshot.coverage * 100, 1),
            )
            return

        eta = snapshot.eta_s
        self._logger.info(
            "ingestion_progress",
            stage=snapshot.stage.value,
            processed=snapshot.processed,
            total=snapshot.total,
            percent=round(snapshot.percent, 1),
            success_rate=round(snapshot.success_rate * 100, 1),
            rate_per_s=round(snapshot.rate_per_s, 2),
            eta_s=round(eta) if eta is not None else None,
        )

    def _listeners_for(self, document_id: str | None) -> list[ProgressListener]:
        listeners = list(self._listeners.get(document_id, []))
        if document_id is not None:
            listeners.extend(self._listeners.get(None, []))
        return listeners

    def _schedule(self, coro: object, snapshot: ProgressSnapshot, callback: ProgressListener) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()  # type: ignore[attr-defined]
            self._logger.warning(
                "async_listener_skipped",
                callback=getattr(callback, "__name__", repr(callback)),
                reason="no running event loop",
            )
            return
        task = loop.create_task(coro)  # type: ignore[arg-type]
        self._pending.add(task)
        task.add_done_callback(lambda done: self._listener_task_done(done, snapshot, callback))

    def _listener_task_done(
        self,
        task: asyncio.Task,
        snapshot: ProgressSnapshot,
        callback: ProgressListener,
    ) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log_listener_error(snapshot, callback, exc)

    def _log_listener_error(
        self,
        snapshot: ProgressSnapshot,
        callback: ProgressListener,
        exc: BaseException,
    ) -> None:
        self._logger.warning(
            "listener_callback_error",
            document_id=snapshot.document_id,
            error=str(exc),
            callback=getattr(callback, "__name__", repr(callback)),
        )

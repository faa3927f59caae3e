"""Supervisor for detached background ingestion runs.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# An ingestion entrypoint returns as soon as the document row exists; the
# embedding work continues as an asyncio.Task owned by this supervisor.
#
#   - One task per document id.  The supervisor holds the strong
#     reference, so a run is never garbage-collected mid-flight.
#   - A done-callback drops the reference and logs any exception that
#     escaped the run (the run itself records failures on the document).
#   - wait() / wait_all() let tests and the CLI block until runs finish.
#   - claim() marks a document as busy while a delete or reprocess
#     works on it across several awaits, so the two never interleave.
#   - shutdown() is awaited from the FastAPI lifespan so in-flight runs
#     finish before the process exits.
#
# There is no caller-facing cancellation: once launched, a run ends only
# by completing, failing, or hitting its own deadline.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from rag_feeder.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


class TaskSupervisor:
    """Owns the background ingestion tasks, keyed by document id."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._closed = False
        self._claimed: set[str] = set()

    def launch(self, document_id: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule *coro* as the run for *document_id*.

        Raises
        ------
        ValidationError
            If the supervisor is shut down or a run for this document is
            still active.
        """
        if self._closed or self.is_running(document_id):
            coro.close()
            reason = "shutting down" if self._closed else "already processing"
            raise ValidationError(f"Cannot start ingestion for {document_id}: {reason}")

        task = asyncio.create_task(coro, name=f"ingest:{document_id}")
        self._tasks[document_id] = task
        task.add_done_callback(lambda t, doc_id=document_id: self._on_done(doc_id, t))
        logger.info("background_run_launched", document_id=document_id, active=len(self._tasks))
        return task

    def check_accepting(self) -> None:
        """Raise :class:`ValidationError` once :meth:`shutdown` has started."""
        if self._closed:
            raise ValidationError("Ingestion is unavailable: the service is shutting down")

    @contextmanager
    def claim(self, document_id: str) -> Iterator[None]:
        """Hold *document_id* exclusively for the duration of the block.

        Raises
        ------
        ValidationError
            If the document has an active run or is already claimed.
        """
        if document_id in self._claimed or self.is_running(document_id):
            raise ValidationError(f"Document {document_id} is busy; retry once processing finishes")
        self._claimed.add(document_id)
        try:
            yield
        finally:
            self._claimed.discard(document_id)

    def is_running(self, document_id: str) -> bool:
        task = self._tasks.get(document_id)
        return task is not None and not task.done()

    def active_count(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    async def wait(self, document_id: str) -> Any:
        """Wait for the run of *document_id*; returns its result, or ``None`` if none is active."""
        task = self._tasks.get(document_id)
        if task is None:
            return None
        return await asyncio.shield(task)

    async def wait_all(self) -> None:
        """Wait until every launched run has finished."""
        while self._tasks:
            pending = list(self._tasks.values())
            await asyncio.wait(pending)
            # Done-callbacks run on the next loop iteration.
            await asyncio.sleep(0)

    async def shutdown(self, timeout: float | None = None) -> None:
        """Refuse new runs and wait for the outstanding ones.

        Runs still active after *timeout* seconds are cancelled; their
        documents stay in ``processing`` and can be reprocessed.
        """
        self._closed = True
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=timeout)
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
                logger.warning("background_runs_cancelled", count=len(still_running))
        logger.info("task_supervisor_shutdown", runs=len(pending))

    def _on_done(self, document_id: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(document_id) is task:
            del self._tasks[document_id]
        if task.cancelled():
            logger.warning("background_run_cancelled", document_id=document_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_run_crashed",
                document_id=document_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )

"""Audit sinks — best-effort structured records of each interaction.

``emit`` never blocks the caller. ``LogAuditSink`` writes one JSON line per
event to the ``aiengine.audit`` logger; ``QueuedAuditSink`` puts events on a
bounded queue drained by a background task and drops them when full.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("aiengine.audit")


class AuditSink(Protocol):
    def emit(self, event: dict[str, Any]) -> None: ...


class LogAuditSink:
    def emit(self, event: dict[str, Any]) -> None:
        audit_logger.info(f"[AUDIT] {json.dumps(event, default=str, ensure_ascii=False)}")


class QueuedAuditSink:
    """Decouples event producers from a possibly slow downstream sink."""

    def __init__(self, sink: AuditSink, maxsize: int = 1000):
        self.sink = sink
        self.dropped = 0
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self._stopped = False

    def emit(self, event: dict[str, Any]) -> None:
        if self._stopped:
            # Nothing drains the queue any more; deliver inline.
            self._deliver(event)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Audit queue full, dropped event (total dropped={self.dropped})")

    def start(self) -> None:
        """Start draining. Must be called from a running event loop."""
        self._stopped = False
        if self._task is None:
            self._task = asyncio.create_task(self._drain(), name="audit-drain")

    async def stop(self, timeout: float = 5.0) -> None:
        """Flush what is queued (up to ``timeout``) and stop the drain task.

        Events emitted after this go straight to the downstream sink.
        """
        self._stopped = True
        if self._task is None:
            self._flush_nowait()
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except TimeoutError:
            logger.warning(f"Audit flush timed out with {self._queue.qsize()} events pending")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def _deliver(self, event: dict[str, Any]) -> None:
        try:
            self.sink.emit(event)
        except Exception as e:
            logger.warning(f"Audit sink failed: {e}", exc_info=True)

    def _flush_nowait(self) -> None:
        while not self._queue.empty():
            self._deliver(self._queue.get_nowait())
            self._queue.task_done()

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._deliver(event)
            finally:
                self._queue.task_done()

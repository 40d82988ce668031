"""Background queue for advisory side effects.

Recall paths bump access counters after returning results.  Those writes
run here, on a single worker task, so a slow or failing side effect never
delays or breaks the read that triggered it.  Failures are logged and
written to the audit trail.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable

from tiermem.audit import AuditEventType
from tiermem.audit import AuditLogger
from tiermem.config import SideEffectConfig

logger = logging.getLogger(__name__)

SideEffect = Callable[[], Awaitable[None]]


class SideEffectQueue:
    """Bounded FIFO of fire-and-forget coroutines drained by one worker."""

    def __init__(
        self,
        config: SideEffectConfig | None = None,
        *,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._config = config or SideEffectConfig()
        self._audit = audit_logger
        self._queue: asyncio.Queue[tuple[str, SideEffect]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self.completed = 0
        self.failed = 0
        self.dropped = 0

    def submit(self, label: str, effect: SideEffect) -> bool:
        """Schedule *effect*; returns ``False`` when the queue is full.

        Must be called from a running event loop.  The worker is started
        lazily on first submit.
        """
        queue = self._ensure_worker()
        try:
            queue.put_nowait((label, effect))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("side-effect queue full, dropping %s", label)
            return False
        return True

    async def drain(self) -> None:
        """Wait until every submitted side effect has run."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Drain pending work, then stop the worker."""
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._queue = None

    def _ensure_worker(self) -> asyncio.Queue[tuple[str, SideEffect]]:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._config.max_pending)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(self._queue), name="tiermem-side-effects"
            )
        return self._queue

    async def _run(self, queue: asyncio.Queue[tuple[str, SideEffect]]) -> None:
        while True:
            label, effect = await queue.get()
            try:
                await effect()
                self.completed += 1
            except Exception as exc:
                self.failed += 1
                logger.exception("side effect %s failed", label)
                if self._audit is not None:
                    await self._audit.record(
                        AuditEventType.SIDE_EFFECT_FAILED,
                        label=label,
                        error=repr(exc),
                    )
            finally:
                queue.task_done()

"""Async JSONL audit logger."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from pathlib import Path

from pydantic import ValidationError

from tiermem.audit.schemas import AuditEvent
from tiermem.audit.schemas import AuditEventType
from tiermem.config import AuditConfig

logger = logging.getLogger(__name__)


class AuditLogger:
    """Append-only JSONL audit log.

    File I/O runs in a worker thread via ``asyncio.to_thread`` and is
    serialized by an ``asyncio.Lock``.  ``record`` never raises: audit is
    a side channel and must not break the memory operation it describes.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        """Append *event* as a single JSON line."""
        if not self.config.enabled:
            return
        line = event.model_dump_json() + "\n"
        async with self._lock:
            await asyncio.to_thread(partial(self._append, self.config.file_path, line))

    async def record(
        self,
        event_type: AuditEventType,
        *,
        agent_id: str | None = None,
        **payload: object,
    ) -> None:
        """Build and log an event, logging (not raising) on I/O failure."""
        try:
            await self.log(
                AuditEvent(event_type=event_type, agent_id=agent_id, payload=payload)
            )
        except OSError:
            logger.exception("audit write failed for %s", event_type.value)

    @staticmethod
    def _append(path: str, line: str) -> None:
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(line)

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        agent_id: str | None = None,
        since: float | None = None,
    ) -> list[AuditEvent]:
        """Read events back from the audit file, optionally filtered."""
        path = Path(self.config.file_path)
        if not path.exists():
            return []

        async with self._lock:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        events: list[AuditEvent] = []
        for line_no, line in enumerate(raw.strip().splitlines(), start=1):
            try:
                evt = AuditEvent.model_validate_json(line)
            except ValidationError:
                logger.warning(
                    "Skipping malformed audit line %d in %s", line_no, path
                )
                continue
            if event_type is not None and evt.event_type != event_type:
                continue
            if agent_id is not None and evt.agent_id != agent_id:
                continue
            if since is not None and evt.timestamp < since:
                continue
            events.append(evt)
        return events

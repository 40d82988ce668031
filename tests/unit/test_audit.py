"""Unit tests for the audit logger."""

from __future__ import annotations

import json
from pathlib import Path

from tiermem.audit import AuditEvent
from tiermem.audit import AuditEventType
from tiermem.audit import AuditLogger
from tiermem.config import AuditConfig

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_event(
    event_type: AuditEventType = AuditEventType.EPISODE_WRITTEN,
    timestamp: float = 1000.0,
    agent_id: str | None = "agent-1",
    payload: dict | None = None,
) -> AuditEvent:
    return AuditEvent(
        timestamp=timestamp,
        event_type=event_type,
        agent_id=agent_id,
        payload=payload or {},
    )


def _config(tmp_path: Path, *, enabled: bool = True) -> AuditConfig:
    return AuditConfig(file_path=str(tmp_path / "test_audit.jsonl"), enabled=enabled)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


class TestAuditLoggerWrite:
    async def test_log_appends_one_json_line(self, tmp_path):
        logger = AuditLogger(_config(tmp_path))
        await logger.log(_make_event(payload={"episode_id": "ep_1"}))
        await logger.log(_make_event())

        lines = (tmp_path / "test_audit.jsonl").read_text().strip().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["event_type"] == "EPISODE_WRITTEN"
        assert first["payload"] == {"episode_id": "ep_1"}

    async def test_disabled_logger_writes_nothing(self, tmp_path):
        logger = AuditLogger(_config(tmp_path, enabled=False))
        await logger.log(_make_event())
        assert not (tmp_path / "test_audit.jsonl").exists()

    async def test_record_builds_event_from_kwargs(self, tmp_path):
        logger = AuditLogger(_config(tmp_path))
        await logger.record(
            AuditEventType.CONTEXT_ASSEMBLED, agent_id="agent-7", trimmed=True
        )

        [event] = await logger.read_events()
        assert event.agent_id == "agent-7"
        assert event.payload == {"trimmed": True}

    async def test_record_swallows_io_errors(self, tmp_path):
        missing_dir = tmp_path / "nope" / "audit.jsonl"
        logger = AuditLogger(AuditConfig(file_path=str(missing_dir)))

        await logger.record(AuditEventType.PROMOTION_FAILED, error="x")

        assert not missing_dir.exists()


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


class TestAuditLoggerRead:
    async def test_missing_file_reads_empty(self, tmp_path):
        assert await AuditLogger(_config(tmp_path)).read_events() == []

    async def test_filters(self, tmp_path):
        logger = AuditLogger(_config(tmp_path))
        await logger.log(_make_event(timestamp=1.0))
        await logger.log(
            _make_event(event_type=AuditEventType.KNOWLEDGE_PROMOTED, timestamp=2.0)
        )
        await logger.log(_make_event(agent_id="agent-2", timestamp=3.0))

        promoted = await logger.read_events(
            event_type=AuditEventType.KNOWLEDGE_PROMOTED
        )
        assert [e.timestamp for e in promoted] == [2.0]
        assert [e.timestamp for e in await logger.read_events(agent_id="agent-2")] == [
            3.0
        ]
        assert [e.timestamp for e in await logger.read_events(since=2.0)] == [
            2.0,
            3.0,
        ]

    async def test_skips_malformed_lines(self, tmp_path):
        path = tmp_path / "test_audit.jsonl"
        path.write_text("not json\n")
        logger = AuditLogger(_config(tmp_path))
        await logger.log(_make_event())

        assert len(await logger.read_events()) == 1

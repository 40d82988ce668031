"""Audit domain — JSONL trail of memory writes and absorbed failures."""

from tiermem.audit.schemas import AuditEvent
from tiermem.audit.schemas import AuditEventType
from tiermem.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]

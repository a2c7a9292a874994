"""Audit trail for access to personal data held by the EP API.

Sub-clients report every MEP-related read (success with a record count,
failure with the error message) through the narrow :class:`AuditSink`
protocol. Persistence is left to the sink; the sinks here either log the
event or keep a bounded in-memory buffer.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Protocol

from ..constants import DEFAULT_AUDIT_BUFFER_SIZE
from ..logging import info, LogRecord, LogEvent


@dataclass
class AuditEvent:
    action: str
    params: Dict[str, Any]
    success: bool
    count: Optional[int] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @classmethod
    def data_access(
        cls,
        action: str,
        params: Dict[str, Any],
        count: int,
        duration_ms: Optional[float] = None,
    ) -> "AuditEvent":
        return cls(
            action=action,
            params=params,
            success=True,
            count=count,
            duration_ms=duration_ms,
        )

    @classmethod
    def failure(
        cls,
        action: str,
        params: Dict[str, Any],
        error: str,
        duration_ms: Optional[float] = None,
    ) -> "AuditEvent":
        return cls(
            action=action,
            params=params,
            success=False,
            error=error,
            duration_ms=duration_ms,
        )


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes each audit event as a structured INFO log line."""

    def record(self, event: AuditEvent) -> None:
        info(
            LogRecord(
                event=LogEvent.AUDIT_EVENT.value,
                message=f"Audit: {event.action}",
                data={
                    "action": event.action,
                    "params": event.params,
                    "success": event.success,
                    "count": event.count,
                    "error": event.error,
                    "duration_ms": event.duration_ms,
                    "timestamp": event.timestamp,
                },
            )
        )


class InMemoryAuditSink:
    """Keeps the most recent ``max_events`` audit events."""

    def __init__(self, max_events: int = DEFAULT_AUDIT_BUFFER_SIZE):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)

    def record(self, event: AuditEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[AuditEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

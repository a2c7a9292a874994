from unittest.mock import AsyncMock, MagicMock

import pytest

from epclient.application.audit import AuditEvent, InMemoryAuditSink, LoggingAuditSink
from epclient.clients.base import BaseEPClient
from epclient.logging import LogEvent


class TestAuditEvent:
    def test_data_access(self):
        event = AuditEvent.data_access("get_meps", {"country": "SE"}, 12, duration_ms=5.0)
        assert event.success is True
        assert event.count == 12
        assert event.error is None
        assert event.timestamp

    def test_failure(self):
        event = AuditEvent.failure("get_mep_details", {"id": "1"}, "not found")
        assert event.success is False
        assert event.error == "not found"
        assert event.count is None


class TestInMemoryAuditSink:
    def test_keeps_most_recent_events(self):
        sink = InMemoryAuditSink(max_events=2)
        for i in range(3):
            sink.record(AuditEvent.data_access(f"action-{i}", {}, i))
        assert [e.action for e in sink.events] == ["action-1", "action-2"]

    def test_clear(self):
        sink = InMemoryAuditSink()
        sink.record(AuditEvent.data_access("get_meps", {}, 0))
        sink.clear()
        assert sink.events == []


def test_logging_sink_writes_audit_event(mock_logger):
    mock_logger.reset_mock()
    LoggingAuditSink().record(AuditEvent.data_access("get_meps", {"group": "EPP"}, 3))

    record = mock_logger.log.call_args.kwargs["extra"]["log_record"]
    assert record.event == LogEvent.AUDIT_EVENT.value
    assert record.data["action"] == "get_meps"
    assert record.data["count"] == 3


@pytest.mark.anyio
async def test_failed_operation_audited_and_reraised():
    sink = InMemoryAuditSink()
    client = BaseEPClient(MagicMock(), audit_sink=sink)

    with pytest.raises(RuntimeError):
        await client._audited(
            "get_meps", {"limit": None}, AsyncMock(side_effect=RuntimeError("down")), len
        )

    assert sink.events[0].success is False
    assert sink.events[0].error == "down"
    assert sink.events[0].params == {}

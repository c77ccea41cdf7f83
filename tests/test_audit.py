"""Tests for the audit sinks."""

from __future__ import annotations

import json
import logging

import pytest

from aiengine.audit import LogAuditSink, QueuedAuditSink
from tests.helpers import ExplodingAudit, RecordingAudit


def test_log_sink_writes_one_json_line(caplog):
    with caplog.at_level(logging.INFO, logger="aiengine.audit"):
        LogAuditSink().emit({"type": "request", "session_id": "s1"})

    [record] = [r for r in caplog.records if r.name == "aiengine.audit"]
    assert record.getMessage().startswith("[AUDIT] ")
    payload = json.loads(record.getMessage().removeprefix("[AUDIT] "))
    assert payload == {"type": "request", "session_id": "s1"}


class TestQueuedAuditSink:
    @pytest.mark.asyncio
    async def test_drains_events_in_order(self):
        downstream = RecordingAudit()
        sink = QueuedAuditSink(downstream, maxsize=10)
        sink.start()
        for i in range(5):
            sink.emit({"n": i})
        await sink.stop()

        assert [e["n"] for e in downstream.events] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_full_queue_drops_instead_of_blocking(self):
        downstream = RecordingAudit()
        sink = QueuedAuditSink(downstream, maxsize=2)
        for i in range(5):
            sink.emit({"n": i})

        assert sink.dropped == 3
        await sink.stop()
        assert [e["n"] for e in downstream.events] == [0, 1]

    @pytest.mark.asyncio
    async def test_failing_downstream_is_contained(self):
        sink = QueuedAuditSink(ExplodingAudit(), maxsize=10)
        sink.start()
        sink.emit({"n": 1})
        sink.emit({"n": 2})
        await sink.stop()
        assert sink.dropped == 0

    @pytest.mark.asyncio
    async def test_stop_is_safe_to_repeat(self):
        sink = QueuedAuditSink(RecordingAudit())
        sink.start()
        await sink.stop()
        await sink.stop()

    @pytest.mark.asyncio
    async def test_emit_after_stop_delivers_inline(self):
        downstream = RecordingAudit()
        sink = QueuedAuditSink(downstream, maxsize=10)
        sink.start()
        await sink.stop()

        sink.emit({"n": 1})

        assert [e["n"] for e in downstream.events] == [1]
        assert sink.dropped == 0

    @pytest.mark.asyncio
    async def test_restart_queues_again(self):
        downstream = RecordingAudit()
        sink = QueuedAuditSink(downstream, maxsize=10)
        sink.start()
        await sink.stop()
        sink.start()

        sink.emit({"n": 1})
        assert downstream.events == []
        await sink.stop()
        assert [e["n"] for e in downstream.events] == [1]

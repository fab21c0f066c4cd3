"""
Tests for progress event delivery.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools.progress import (
    ProgressEventType,
    ProgressSink,
    QueueProgressSink,
    notify,
    notify_message,
)


class ExplodingSink(ProgressSink):
    def emit(self, subscriber_key, event_type, payload):
        raise ConnectionError("subscriber went away")


class TestNotify:
    """Tests for fire-and-forget delivery."""

    def test_message_event(self):
        sink = QueueProgressSink()
        notify_message(sink, "lead-1", "Analyzing page 1 of 3")

        (event,) = sink.drain()
        assert event.subscriber_key == "lead-1"
        assert event.type == ProgressEventType.BATCH_PROGRESS
        assert event.message == "Analyzing page 1 of 3"
        assert event.timestamp > 0

    def test_no_subscriber_no_event(self):
        sink = QueueProgressSink()
        notify_message(sink, None, "ignored")
        notify_message(sink, "", "ignored")
        assert sink.drain() == []

    def test_no_sink(self):
        notify(None, "lead-1", ProgressEventType.COMPLETE, {"item_count": 0})

    def test_sink_failure_is_swallowed(self, caplog):
        notify(ExplodingSink(), "lead-1", ProgressEventType.COMPLETE, {"item_count": 3})
        assert "dropped" in caplog.text

    def test_full_queue_drops_event(self):
        sink = QueueProgressSink(maxsize=1)
        notify_message(sink, "lead-1", "first")
        notify_message(sink, "lead-1", "second")

        assert [event.message for event in sink.drain()] == ["first"]

    def test_payload_copied(self):
        sink = QueueProgressSink()
        payload = {"item_count": 1}
        notify(sink, "lead-1", ProgressEventType.COMPLETE, payload)
        payload["item_count"] = 99

        assert sink.drain()[0].payload == {"item_count": 1}

"""
Progress events for pipeline subscribers.

Delivery is fire-and-forget: a failing or missing sink never affects the
pipeline result.
"""

import logging
import queue
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ProgressEventType(Enum):
    """Type of progress update."""
    BATCH_PROGRESS = "batch_progress"  # Human-readable step message
    COMPLETE = "complete"              # Pipeline finished
    ERROR = "error"                    # Pipeline failed


@dataclass
class ProgressEvent:
    """
    Progress event delivered to a subscriber.

    Attributes:
        subscriber_key: Key scoping the event to one caller (e.g. a lead id)
        type: Type of progress update
        payload: Event data; batch_progress events carry a "message"
        timestamp: Epoch milliseconds
    """
    subscriber_key: str
    type: ProgressEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def message(self) -> str:
        return str(self.payload.get("message", ""))


class ProgressSink(ABC):
    """Receives progress events."""

    @abstractmethod
    def emit(self, subscriber_key: str, event_type: ProgressEventType, payload: Dict[str, Any]) -> None:
        pass


class NullProgressSink(ProgressSink):
    """Discards everything."""

    def emit(self, subscriber_key, event_type, payload) -> None:
        return None


class LoggingProgressSink(ProgressSink):
    """Writes events to the log, for CLI runs."""

    def emit(self, subscriber_key, event_type, payload) -> None:
        message = payload.get("message") or payload
        logger.info(f"[{subscriber_key}] {event_type.value}: {message}")


class QueueProgressSink(ProgressSink):
    """
    Puts events on a thread-safe queue.

    Lets a consumer on another thread (GUI, streaming endpoint) follow a run.
    """

    def __init__(self, maxsize: int = 0):
        self.queue: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)

    def emit(self, subscriber_key, event_type, payload) -> None:
        # put_nowait: a full queue drops the event instead of blocking the pipeline
        self.queue.put_nowait(ProgressEvent(subscriber_key, event_type, dict(payload)))

    def drain(self) -> List[ProgressEvent]:
        events = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events


def notify(
    sink: Optional[ProgressSink],
    subscriber_key: Optional[str],
    event_type: ProgressEventType,
    payload: Dict[str, Any]
) -> None:
    """Emit an event if someone is listening; sink errors are logged and dropped."""
    if not subscriber_key or sink is None:
        return
    try:
        sink.emit(subscriber_key, event_type, payload)
    except Exception as e:
        logger.warning(f"Progress event {event_type.value} for {subscriber_key} dropped: {e}")


def notify_message(sink: Optional[ProgressSink], subscriber_key: Optional[str], message: str) -> None:
    """Shorthand for a batch_progress event carrying a message."""
    notify(sink, subscriber_key, ProgressEventType.BATCH_PROGRESS, {"message": message})

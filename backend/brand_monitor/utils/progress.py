"""
Progress sinks
Fire-and-forget destinations for orchestrator events
"""

import asyncio
import logging
from typing import Callable, List, Optional, Protocol

from brand_monitor.schemas.events import ProgressEvent

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def emit(self, event: ProgressEvent) -> None:
        ...


class NullProgressSink:
    """Drops every event"""

    def emit(self, event: ProgressEvent) -> None:
        return None


class QueueProgressSink:
    """
    Buffers events on an asyncio.Queue for a streaming consumer.
    When the queue is full the event is dropped so the analysis never waits
    on a slow reader.
    """

    def __init__(self, maxsize: int = 0):
        self.queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def emit(self, event: ProgressEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Progress queue full, dropped {event.type.value} event")

    def drain(self) -> List[ProgressEvent]:
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events


class CallbackProgressSink:
    """Hands each event to a callback; callback errors are logged, not raised"""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def emit(self, event: ProgressEvent) -> None:
        try:
            self.callback(event)
        except Exception:
            logger.exception(f"Progress callback failed for {event.type.value} event")


def create_sse_message(event: ProgressEvent, event_name: Optional[str] = None) -> str:
    """Frame an event as a server-sent events message"""
    prefix = f"event: {event_name}\n" if event_name else ""
    return f"{prefix}data: {event.model_dump_json()}\n\n"

"""Log event publishers.

A publisher accepts messages without blocking the caller and writes them
from a background task. ``ConsolePublisher`` is the queue-and-drain
implementation used by the services; ``PublisherHandler`` bridges standard
library logging records into any publisher.
"""

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, TextIO

from pydantic import BaseModel, Field
from pydantic_core import to_json

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 20


class LogEvent(BaseModel):
    """Structured log event written by publishers.

    Attributes:
        timestamp: When the event occurred (UTC)
        body: Log message
        level: Severity name (DEBUG, INFO, ...)
        source: Logger or component that produced the event
        trace_id: W3C trace id, if any
        span_id: W3C span id, if any
        correlation_id: Application-level correlation id
        exception: Formatted exception text
        tags: Extra key/value attributes
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    body: str
    level: str = "INFO"
    source: str = ""
    trace_id: str | None = None
    span_id: str | None = None
    correlation_id: str | None = None
    exception: str | None = None
    tags: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "LogEvent":
        """Build an event from a standard library log record."""
        exception = None
        if record.exc_info:
            exception = logging.Formatter().formatException(record.exc_info)
        return cls(
            timestamp=datetime.fromtimestamp(record.created, UTC),
            body=record.getMessage(),
            level=record.levelname,
            source=record.name,
            correlation_id=getattr(record, "correlation_id", None),
            exception=exception,
        )


class Publisher(ABC):
    """Abstract publisher of log messages to an output."""

    @abstractmethod
    async def write_line(self, message: str | LogEvent) -> None:
        """Publish a message followed by a line terminator."""
        pass

    @abstractmethod
    async def write(self, message: str | LogEvent) -> None:
        """Publish a message without a line terminator."""
        pass

    async def close(self) -> None:
        return None


class ConsolePublisher(Publisher):
    """Writes queued messages to a text stream as JSON.

    Two queues (line and raw) are drained by one background task every
    ``delay_ms`` milliseconds. ``close()`` stops the task after draining
    whatever is still queued.

    Example:
        >>> publisher = ConsolePublisher()
        >>> await publisher.write_line(LogEvent(body="sweep completed"))
        >>> await publisher.close()
    """

    def __init__(self, delay_ms: int = DEFAULT_DELAY_MS, stream: TextIO | None = None):
        self.delay = (delay_ms if delay_ms > 0 else DEFAULT_DELAY_MS) / 1000
        self.stream = stream or sys.stdout
        self.total_events = 0
        self._line_queue: asyncio.Queue[str | LogEvent] = asyncio.Queue()
        self._write_queue: asyncio.Queue[str | LogEvent] = asyncio.Queue()
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_closed(self) -> bool:
        return self._task is None or self._task.done()

    def start(self) -> None:
        """Start the drain task if it is not already running."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._drain_loop())

    async def write_line(self, message: str | LogEvent) -> None:
        if not message:
            return
        self.start()
        self._line_queue.put_nowait(message)

    async def write(self, message: str | LogEvent) -> None:
        if not message:
            return
        self.start()
        self._write_queue.put_nowait(message)

    @staticmethod
    def _render(message: str | LogEvent) -> str:
        if isinstance(message, LogEvent):
            return message.model_dump_json()
        return to_json(message).decode("utf-8")

    def _drain(self) -> None:
        while not self._line_queue.empty():
            self.stream.write(self._render(self._line_queue.get_nowait()) + "\n")
            self.total_events += 1
        while not self._write_queue.empty():
            self.stream.write(self._render(self._write_queue.get_nowait()))
            self.total_events += 1
        self.stream.flush()

    async def _drain_loop(self) -> None:
        while not self._stopping.is_set():
            self._drain()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.delay)
            except asyncio.TimeoutError:
                pass
        self._drain()

    async def close(self) -> None:
        """Drain the queues and stop the background task."""
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None


class PublisherHandler(logging.Handler):
    """Logging handler that forwards records to a publisher.

    Must be used from a thread running the publisher's event loop.
    """

    def __init__(self, publisher: Publisher, level: int = logging.NOTSET):
        super().__init__(level)
        self.publisher = publisher
        self._pending: set[asyncio.Task[None]] = set()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent.from_record(record)
            task = asyncio.get_running_loop().create_task(
                self.publisher.write_line(event)
            )
        except Exception:
            self.handleError(record)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

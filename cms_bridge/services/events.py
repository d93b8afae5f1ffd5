"""Structured delivery lifecycle events and their observers."""
import asyncio
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class DeliveryEventType(str, Enum):
    """Lifecycle events emitted by the webhook dispatcher."""

    QUEUED = "queued"
    SUCCESS = "success"
    RETRY = "retry"
    FAILED = "failed"
    QUEUE_CLEARED = "queue_cleared"
    PROCESSING_PAUSED = "processing_paused"
    PROCESSING_RESUMED = "processing_resumed"


@dataclass(frozen=True)
class DeliveryEvent:
    """
    One lifecycle notification.

    Job events carry the webhook event name, the content id and the attempt
    number; retries add the computed delay before the next attempt, and
    retries and failures add the error message.
    """

    type: DeliveryEventType
    job_id: Optional[str] = None
    event: Optional[str] = None
    content_id: Any = None
    target_url: Optional[str] = None
    attempt: Optional[int] = None
    next_retry_in_ms: Optional[int] = None
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    cleared_count: Optional[int] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return {key: value for key, value in data.items() if value not in (None, {})}


class DeliveryObserver(Protocol):
    """Receives every event; must not block or raise."""

    def notify(self, event: DeliveryEvent) -> None:
        ...


class LoggingObserver:
    """Writes delivery events to the application log."""

    def notify(self, event: DeliveryEvent) -> None:
        if event.type == DeliveryEventType.QUEUED:
            logger.info(f"Queued '{event.event}' webhook for content '{event.content_id}'")
        elif event.type == DeliveryEventType.SUCCESS:
            logger.info(
                f"Delivered '{event.event}' webhook for content '{event.content_id}' "
                f"(attempt {event.attempt}, {event.duration_ms}ms)"
            )
        elif event.type == DeliveryEventType.RETRY:
            logger.warning(
                f"Webhook '{event.event}' for content '{event.content_id}' failed on "
                f"attempt {event.attempt}, retrying in {event.next_retry_in_ms}ms: {event.error}"
            )
        elif event.type == DeliveryEventType.FAILED:
            logger.error(
                f"Webhook '{event.event}' for content '{event.content_id}' permanently "
                f"failed after {event.attempt} attempts: {event.error}"
            )
        elif event.type == DeliveryEventType.QUEUE_CLEARED:
            logger.info(f"Webhook queue cleared ({event.cleared_count} pending jobs rejected)")
        else:
            logger.info(f"Webhook processing {event.type.value.replace('processing_', '')}")


class RecordingObserver:
    """Keeps events in memory, for stats endpoints and tests."""

    def __init__(self, max_events: int = 1000):
        self.max_events = max_events
        self.events: list[DeliveryEvent] = []

    def notify(self, event: DeliveryEvent) -> None:
        self.events.append(event)
        if len(self.events) > self.max_events:
            self.events.pop(0)

    def of_type(self, event_type: DeliveryEventType) -> list[DeliveryEvent]:
        return [e for e in self.events if e.type == event_type]


class AsyncHandlerObserver:
    """
    Runs an async handler for selected event types as a background task.

    Keeps references to pending tasks so they are not garbage collected, and
    logs handler failures instead of letting them reach the dispatcher.
    """

    def __init__(
        self,
        handler: Callable[[DeliveryEvent], Awaitable[None]],
        event_types: Optional[set[DeliveryEventType]] = None,
    ):
        self.handler = handler
        self.event_types = event_types
        self._tasks: set[asyncio.Task] = set()

    def notify(self, event: DeliveryEvent) -> None:
        if self.event_types is not None and event.type not in self.event_types:
            return
        task = asyncio.get_running_loop().create_task(self._run(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, event: DeliveryEvent) -> None:
        try:
            await self.handler(event)
        except Exception as e:
            logger.error(f"Delivery event handler failed for {event.type.value}: {e}")

    async def drain(self) -> None:
        """Wait for handlers that are still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

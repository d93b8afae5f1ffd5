"""In-memory, capacity-bounded queue of pending webhook deliveries."""
import asyncio
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from cms_bridge.utils.exceptions import QueueClearedError, QueueFullError


class JobOutcome(str, Enum):
    """Delivery state of a job, derived from its attempts and future."""

    PENDING = "pending"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class DeliveryResult:
    """Response of a successful delivery."""

    status: int
    data: Any
    headers: dict[str, str]


@dataclass(eq=False)
class WebhookJob:
    """A webhook waiting to be delivered, with its retry bookkeeping."""

    target_url: str
    secret: str
    event: str
    data: dict
    future: asyncio.Future
    enqueued_at: float
    attempts: int = 0
    last_error: Optional[Exception] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def content_id(self) -> Any:
        return self.data.get("id") if isinstance(self.data, dict) else None

    @property
    def outcome(self) -> JobOutcome:
        if self.future.done():
            if not self.future.cancelled() and self.future.exception() is None:
                return JobOutcome.SUCCESS
            return JobOutcome.FAILED
        return JobOutcome.RETRYING if self.attempts > 0 else JobOutcome.PENDING

    def __repr__(self):
        return f"<WebhookJob(event='{self.event}', content_id='{self.content_id}', attempts={self.attempts})>"


class DeliveryQueue:
    """
    FIFO of WebhookJob with strict capacity.

    New jobs go to the back; retries go to the front once their backoff
    elapsed. Pushing a new job at capacity raises immediately.
    """

    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._items: deque[WebhookJob] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[WebhookJob]:
        return iter(self._items)

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self.max_size

    def push(self, job: WebhookJob) -> None:
        if self.is_full:
            raise QueueFullError(self.max_size)
        self._items.append(job)

    def push_front(self, job: WebhookJob) -> None:
        """Re-insert a retry ahead of new jobs; retries are never rejected for capacity."""
        self._items.appendleft(job)

    def pop(self) -> Optional[WebhookJob]:
        return self._items.popleft() if self._items else None

    def clear(self) -> int:
        """Reject every queued job with QueueClearedError and return how many were dropped."""
        cleared = list(self._items)
        self._items.clear()
        for job in cleared:
            if not job.future.done():
                job.future.set_exception(QueueClearedError(job.event, job.content_id))
        return len(cleared)

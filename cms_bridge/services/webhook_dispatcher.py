"""Queued outbound webhook sender with rate limiting, concurrency control and retries."""
import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from cms_bridge.config import Settings
from cms_bridge.services.clock import Clock, system_clock
from cms_bridge.services.delivery_queue import DeliveryQueue, DeliveryResult, WebhookJob
from cms_bridge.services.events import DeliveryEvent, DeliveryEventType, DeliveryObserver
from cms_bridge.services.executor import DEFAULT_USER_AGENT, WebhookExecutor
from cms_bridge.services.governor import DeliveryGovernor
from cms_bridge.services.retry import RetryPolicy
from cms_bridge.utils.exceptions import (
    BridgeServiceException,
    DeliveryError,
    QueueClearedError,
    WebhookDeliveryFailedError,
)

logger = logging.getLogger(__name__)


def consume_outcome(future: asyncio.Future) -> None:
    """Mark a job's outcome as retrieved for waiters that gave up on it."""
    if not future.cancelled():
        future.exception()


@dataclass
class DispatcherConfig:
    """Tuning for one dispatcher instance."""

    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    timeout: float = 10.0
    rate_limit: int = 10
    rate_window_seconds: float = 60.0
    max_concurrent: int = 5
    queue_max_size: int = 100
    poll_interval_ms: int = 100
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatcherConfig":
        return cls(
            retry_attempts=settings.WEBHOOK_RETRY_ATTEMPTS,
            retry_delay_ms=settings.WEBHOOK_RETRY_DELAY_MS,
            timeout=settings.WEBHOOK_TIMEOUT,
            rate_limit=settings.WEBHOOK_RATE_LIMIT,
            rate_window_seconds=settings.WEBHOOK_RATE_WINDOW_SECONDS,
            max_concurrent=settings.WEBHOOK_MAX_CONCURRENT,
            queue_max_size=settings.WEBHOOK_QUEUE_MAX_SIZE,
            poll_interval_ms=settings.WEBHOOK_POLL_INTERVAL_MS,
            user_agent=settings.WEBHOOK_USER_AGENT,
        )


class WebhookDispatcher:
    """
    Delivers webhooks from an in-memory queue.

    Flow:
    - `enqueue()` appends a job (or raises QueueFullError) and returns a future
    - every poll interval, `tick()` starts deliveries while the governor allows
    - a failed attempt is re-queued at the front after its backoff delay
    - the future resolves with a DeliveryResult or fails with
      WebhookDeliveryFailedError once the retry budget is spent

    Counters are only touched synchronously inside `tick()` and the delivery
    task's bookkeeping, never across an await.
    """

    def __init__(
        self,
        config: Optional[DispatcherConfig] = None,
        executor: Optional[WebhookExecutor] = None,
        clock: Clock = system_clock,
        observers: Optional[Iterable[DeliveryObserver]] = None,
    ):
        self.config = config or DispatcherConfig()
        self.clock = clock
        self.queue = DeliveryQueue(self.config.queue_max_size)
        self.governor = DeliveryGovernor(
            max_concurrent=self.config.max_concurrent,
            rate_limit=self.config.rate_limit,
            window_seconds=self.config.rate_window_seconds,
        )
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.retry_attempts,
            base_delay_ms=self.config.retry_delay_ms,
        )
        self.executor = executor or WebhookExecutor(
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
            clock=clock,
        )
        self.observers: list[DeliveryObserver] = list(observers or [])

        self.is_processing = False
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()
        self._pending_retries: set[asyncio.Task] = set()
        self._retrying_jobs: dict[str, WebhookJob] = {}

    # Observers

    def add_observer(self, observer: DeliveryObserver) -> None:
        self.observers.append(observer)

    def _emit(self, event_type: DeliveryEventType, job: Optional[WebhookJob] = None, **fields) -> None:
        if job is not None:
            fields.setdefault("job_id", job.id)
            fields.setdefault("event", job.event)
            fields.setdefault("content_id", job.content_id)
            fields.setdefault("target_url", job.target_url)
        event = DeliveryEvent(type=event_type, **fields)

        for observer in self.observers:
            try:
                observer.notify(event)
            except Exception as e:
                logger.error(f"Delivery observer {observer!r} failed: {e}")

    # Enqueueing

    def enqueue_job(self, target_url: str, secret: str, event: str, data: dict) -> WebhookJob:
        """
        Queue a webhook and return its job.

        Raises QueueFullError immediately when the queue is at capacity.
        """
        job = WebhookJob(
            target_url=target_url,
            secret=secret,
            event=event,
            data=data,
            future=asyncio.get_running_loop().create_future(),
            enqueued_at=self.clock.time(),
        )
        self.queue.push(job)
        self._emit(DeliveryEventType.QUEUED, job)
        return job

    def enqueue(self, target_url: str, secret: str, event: str, data: dict) -> asyncio.Future:
        """Queue a webhook and return a future for its terminal outcome."""
        return self.enqueue_job(target_url, secret, event, data).future

    async def send_webhook(self, target_url: str, secret: str, event: str, data: dict) -> DeliveryResult:
        """
        Queue a webhook and wait until it is delivered or permanently failed.

        Cancelling the caller stops the wait, not the delivery.
        """
        future = self.enqueue(target_url, secret, event, data)
        future.add_done_callback(consume_outcome)
        return await asyncio.shield(future)

    async def send_content_webhook(self, target_url: str, secret: str, event: str, content: dict) -> DeliveryResult:
        return await self.send_webhook(target_url, secret, event, content)

    async def batch_send(self, webhooks: list[dict]) -> dict:
        """
        Send many webhooks and split the outcomes.

        Each webhook dict has `url`, `secret`, `event` and `data`.
        """
        async def send_one(webhook: dict):
            try:
                result = await self.send_webhook(
                    webhook["url"], webhook["secret"], webhook["event"], webhook["data"]
                )
                return {"webhook": webhook, "result": result}
            except BridgeServiceException as e:
                return {"webhook": webhook, "error": e.message}

        results = await asyncio.gather(*(send_one(webhook) for webhook in webhooks))
        return {
            "successful": [r for r in results if "error" not in r],
            "failed": [r for r in results if "error" in r],
        }

    async def test_webhook(self, target_url: str, secret: str) -> dict:
        """Deliver a sample payload to check that a target accepts our signatures."""
        now = self.clock.time()
        test_data = {
            "id": f"test-{int(now * 1000)}",
            "title": "Test Webhook",
            "content": "This is a test webhook payload",
            "status": "published",
        }
        try:
            await self.send_webhook(target_url, secret, "test", test_data)
            return {"success": True, "message": "Webhook test successful"}
        except BridgeServiceException as e:
            return {
                "success": False,
                "message": f"Webhook test failed: {e.message}",
                "error": e.message,
            }

    # Processing loop

    def start(self) -> None:
        """Start the background processing loop."""
        if self.is_processing:
            return
        self.is_processing = True
        self.governor.start(self.clock.monotonic())
        self._loop_task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Webhook dispatcher started")

    async def _run(self) -> None:
        interval = self.config.poll_interval_ms / 1000
        while self.is_processing:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Webhook dispatcher tick failed: {e}")
            await self.clock.sleep(interval)

    def tick(self) -> int:
        """Start as many queued deliveries as the governor allows; return how many."""
        self.governor.refresh(self.clock.monotonic())

        dispatched = 0
        while len(self.queue) and self.governor.can_dispatch():
            job = self.queue.pop()
            if job.future.done():
                # Only a caller cancelling the future itself gets here
                logger.warning(f"Dropping cancelled webhook {job!r}")
                self._emit(DeliveryEventType.FAILED, job, attempt=job.attempts, error="cancelled")
                continue
            self.governor.acquire()
            task = asyncio.get_running_loop().create_task(self._deliver(job))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            dispatched += 1
        return dispatched

    async def _deliver(self, job: WebhookJob) -> None:
        started = self.clock.monotonic()
        try:
            result = await self.executor.execute(job)
        except DeliveryError as e:
            self._handle_failure(job, e)
        except Exception as e:
            logger.exception(f"Unexpected error delivering webhook {job!r}")
            self._handle_failure(job, e)
        else:
            if not job.future.done():
                job.future.set_result(result)
            self._emit(
                DeliveryEventType.SUCCESS,
                job,
                attempt=job.attempts + 1,
                duration_ms=int((self.clock.monotonic() - started) * 1000),
            )
        finally:
            self.governor.release()

    def _handle_failure(self, job: WebhookJob, error: Exception) -> None:
        job.attempts += 1
        job.last_error = error

        if job.future.done():
            # Cleared or cancelled while in flight; nothing left to report to
            return

        if self.retry_policy.should_retry(job.attempts):
            delay_ms = self.retry_policy.delay_ms(job.attempts)
            self._schedule_retry(job, delay_ms)
            self._emit(
                DeliveryEventType.RETRY,
                job,
                attempt=job.attempts,
                next_retry_in_ms=delay_ms,
                error=str(error),
            )
            return

        failure = WebhookDeliveryFailedError(job.event, job.content_id, job.attempts, error)
        failure.__cause__ = error
        job.future.set_exception(failure)
        self._emit(
            DeliveryEventType.FAILED,
            job,
            attempt=job.attempts,
            error=str(error),
            duration_ms=int((self.clock.time() - job.enqueued_at) * 1000),
        )

    def _schedule_retry(self, job: WebhookJob, delay_ms: int) -> None:
        self._retrying_jobs[job.id] = job
        task = asyncio.get_running_loop().create_task(self._requeue_after(job, delay_ms))
        self._pending_retries.add(task)
        task.add_done_callback(self._pending_retries.discard)

    async def _requeue_after(self, job: WebhookJob, delay_ms: int) -> None:
        try:
            await self.clock.sleep(delay_ms / 1000)
        finally:
            self._retrying_jobs.pop(job.id, None)
        if not job.future.done():
            self.queue.push_front(job)

    # Control

    def pause(self) -> None:
        """Stop dispatching; queued jobs stay queued."""
        if not self.is_processing:
            return
        self.is_processing = False
        if self._loop_task:
            self._loop_task.cancel()
            self._loop_task = None
        self._emit(DeliveryEventType.PROCESSING_PAUSED)

    def resume(self) -> None:
        if self.is_processing:
            return
        self.start()
        self._emit(DeliveryEventType.PROCESSING_RESUMED)

    def clear(self) -> int:
        """
        Reject every pending job with QueueClearedError.

        Covers queued jobs and jobs waiting out a retry delay. Requests already
        in flight are not aborted.
        """
        cleared = self.queue.clear()

        for task in list(self._pending_retries):
            task.cancel()
        waiting = list(self._retrying_jobs.values())
        self._retrying_jobs.clear()
        for job in waiting:
            if not job.future.done():
                job.future.set_exception(QueueClearedError(job.event, job.content_id))
                cleared += 1

        self._emit(DeliveryEventType.QUEUE_CLEARED, cleared_count=cleared)
        return cleared

    async def wait_for_in_flight(self) -> None:
        """Wait until every delivery that has started has finished its bookkeeping."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def stop(self, drain: bool = True) -> None:
        """Stop the loop; optionally let in-flight deliveries finish."""
        self.pause()
        if drain:
            await self.wait_for_in_flight()
        for task in list(self._pending_retries):
            task.cancel()
        logger.info("Webhook dispatcher stopped")

    def get_stats(self) -> dict:
        return {
            "queue_length": len(self.queue),
            "queue_max_size": self.queue.max_size,
            "retries_waiting": len(self._retrying_jobs),
            "is_processing": self.is_processing,
            **self.governor.get_stats(self.clock.monotonic()),
            "config": asdict(self.config),
        }

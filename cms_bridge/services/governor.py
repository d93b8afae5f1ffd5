"""Concurrency and per-window request limits for outbound webhooks."""
import logging

logger = logging.getLogger(__name__)


class DeliveryGovernor:
    """
    Caps in-flight requests and requests sent per fixed window.

    The window counter resets to zero on a fixed interval measured from the
    first call to `start()`, not on a sliding window. All methods are
    synchronous: the dispatcher updates counters before it awaits anything.
    """

    def __init__(
        self,
        max_concurrent: int = 5,
        rate_limit: int = 10,
        window_seconds: float = 60.0,
    ):
        if max_concurrent < 1 or rate_limit < 1:
            raise ValueError("max_concurrent and rate_limit must be at least 1")

        self.max_concurrent = max_concurrent
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self.active_requests = 0
        self.sent_this_window = 0
        self.window_started_at: float | None = None

    def start(self, now: float) -> None:
        if self.window_started_at is None:
            self.window_started_at = now

    def refresh(self, now: float) -> None:
        """Reset the window counter if one or more full windows elapsed."""
        if self.window_started_at is None:
            self.window_started_at = now
            return

        elapsed = now - self.window_started_at
        if elapsed >= self.window_seconds:
            windows = int(elapsed // self.window_seconds)
            self.window_started_at += windows * self.window_seconds
            if self.sent_this_window:
                logger.debug(f"Rate window reset ({self.sent_this_window} requests sent)")
            self.sent_this_window = 0

    def can_dispatch(self) -> bool:
        return (
            self.active_requests < self.max_concurrent
            and self.sent_this_window < self.rate_limit
        )

    def acquire(self) -> None:
        self.active_requests += 1
        self.sent_this_window += 1

    def release(self) -> None:
        self.active_requests = max(0, self.active_requests - 1)

    def seconds_until_reset(self, now: float) -> float:
        if self.window_started_at is None:
            return 0.0
        return max(0.0, self.window_seconds - (now - self.window_started_at))

    def get_stats(self, now: float) -> dict:
        return {
            "active_requests": self.active_requests,
            "max_concurrent": self.max_concurrent,
            "rate_limit_used": self.sent_this_window,
            "rate_limit_max": self.rate_limit,
            "window_seconds": self.window_seconds,
            "window_resets_in_seconds": round(self.seconds_until_reset(now), 3),
        }

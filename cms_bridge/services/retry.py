"""Exponential backoff policy for failed webhook deliveries."""
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry schedule (base_delay * 2^(attempt-1)).

    With the defaults:
    - Attempt 1: immediate
    - Attempt 2: 1 second after attempt 1 failed
    - Attempt 3: 2 seconds after attempt 2 failed
    - After 3 attempts: terminal failure
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000

    def should_retry(self, attempts: int) -> bool:
        """`attempts` is the number of failed attempts so far."""
        return attempts < self.max_attempts

    def delay_ms(self, attempts: int) -> int:
        """Delay before the next attempt, after `attempts` failures (>= 1)."""
        return self.base_delay_ms * (2 ** (attempts - 1))

    def schedule_ms(self) -> list[int]:
        """Every delay the policy can produce, in order."""
        return [self.delay_ms(attempt) for attempt in range(1, self.max_attempts)]

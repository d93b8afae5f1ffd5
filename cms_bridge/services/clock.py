"""Time source used by the delivery engine."""
import asyncio
import time


class Clock:
    """
    Wall-clock and sleep provider.

    The dispatcher reads time and sleeps only through this object, so tests can
    substitute a clock that advances manually.
    """

    def time(self) -> float:
        """Unix time in seconds."""
        return time.time()

    def monotonic(self) -> float:
        """Monotonic seconds, used for rate windows and durations."""
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


system_clock = Clock()

import asyncio
from collections.abc import Awaitable, Callable
from time import monotonic

from pdf_quickbooks.logger import get_logger

logger = get_logger(__name__)


class TokenBucket:
    """Async token bucket pacing calls to an upstream service.

    ``rate`` is tokens per second and ``capacity`` the burst size. A rate of
    zero or less disables limiting.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        *,
        clock: Callable[[], float] = monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rate = rate
        self.capacity = max(1, capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.capacity)
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def from_interval(cls, seconds: float, **kwargs) -> "TokenBucket":
        """One call per ``seconds``; ``0`` means unlimited."""
        rate = 1.0 / seconds if seconds > 0 else 0.0
        return cls(rate=rate, capacity=1, **kwargs)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated_at = now

    async def acquire(self) -> float:
        """Wait for a token and return how long we waited, in seconds."""
        if self.rate <= 0:
            return 0.0

        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    if waited:
                        logger.debug("[RATE] Waited %.2fs for upstream slot.", waited)
                    return waited
                delay = (1.0 - self._tokens) / self.rate
                await self._sleep(delay)
                waited += delay

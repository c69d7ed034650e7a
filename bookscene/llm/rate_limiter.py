"""Request pacing and daily quota enforcement for provider calls.

Responsibilities:
- Pace requests with a token bucket (requests per minute plus burst).
- Count requests against a daily budget that resets at midnight UTC.
- Keep time sources injectable so pacing is testable without waiting.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import threading
from time import monotonic, sleep
from typing import Callable, Protocol

from ..errors import QuotaExceededError, RateLimitTimeoutError


class RateLimiter(Protocol):
    """Pacing hook called before every provider request."""

    def acquire(self, timeout: float | None = None) -> None:
        """Block until a request may be sent, or raise `RateLimitTimeoutError`."""


class TokenBucketRateLimiter:
    """Token bucket shared by all threads using one provider client.

    A caller that finds the bucket empty reserves the next token and sleeps
    outside the lock, so concurrent callers queue up in arrival order.
    """

    def __init__(
        self,
        requests_per_minute: float,
        burst: int = 1,
        *,
        clock: Callable[[], float] = monotonic,
        sleeper: Callable[[float], None] = sleep,
    ) -> None:
        self.requests_per_minute = requests_per_minute
        self.capacity = float(max(1, burst))
        self.clock = clock
        self.sleeper = sleeper
        self._tokens = self.capacity
        self._updated_at = clock()
        self._lock = threading.Lock()

    def acquire(self, timeout: float | None = None) -> None:
        """Take one token, sleeping until it is available.

        Raises:
            RateLimitTimeoutError: The wait would exceed `timeout` seconds.
        """

        if self.requests_per_minute <= 0:
            return

        rate_per_second = self.requests_per_minute / 60.0
        with self._lock:
            now = self.clock()
            elapsed = max(0.0, now - self._updated_at)
            self._tokens = min(self.capacity, self._tokens + elapsed * rate_per_second)
            self._updated_at = now

            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return

            wait_seconds = (1.0 - self._tokens) / rate_per_second
            if timeout is not None and wait_seconds > timeout:
                raise RateLimitTimeoutError(
                    f"Rate limit wait of {wait_seconds:.1f}s exceeds the {timeout:.1f}s deadline."
                )
            self._tokens -= 1.0

        self.sleeper(wait_seconds)


def _next_midnight_utc(now: datetime) -> datetime:
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start_of_day + timedelta(days=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyQuota:
    """Daily request budget; `max_requests <= 0` means unlimited."""

    def __init__(
        self,
        max_requests: int,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.max_requests = max_requests
        self.clock = clock
        self.used = 0
        self.reset_at = _next_midnight_utc(clock())
        self._lock = threading.Lock()

    def consume(self) -> None:
        """Count one request.

        Raises:
            QuotaExceededError: The budget for the current UTC day is spent.
        """

        if self.max_requests <= 0:
            return

        with self._lock:
            now = self.clock()
            if now >= self.reset_at:
                self.used = 0
                self.reset_at = _next_midnight_utc(now)
            if self.used >= self.max_requests:
                raise QuotaExceededError(
                    f"Daily request quota exceeded ({self.used}/{self.max_requests})."
                )
            self.used += 1

"""Retry timing for scene and image generation."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ProviderError


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and backoff for pipeline-level provider retries.

    Attributes:
        max_retries: Total attempts per chapter or image (not extra retries).
        retry_delay_seconds: Base delay; attempt `n` waits `base * 2**(n-1)`.
        rate_limit_cooldown_seconds: Fixed wait after a rate-limit error.
    """

    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    rate_limit_cooldown_seconds: float = 60.0

    def backoff(self, attempt: int) -> float:
        """Return the exponential delay after failed 1-based `attempt`."""

        return self.retry_delay_seconds * (2 ** (attempt - 1))

    def scene_delay(self, attempt: int, error: ProviderError) -> float:
        if error.is_rate_limit:
            return self.rate_limit_cooldown_seconds
        return self.backoff(attempt)

"""Domain exceptions for pipeline, provider, and CLI diagnostics.

Responsibilities:
- Separate validation failures (raised before a job exists) from structural
  parse failures (abort one volume) and provider failures (scoped skips).
- Carry enough metadata for retry decisions and stage-aware CLI rendering.
"""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class ValidationError(ValueError):
    """Raised synchronously for caller input that can never be processed."""


class UnsupportedFormatError(ValidationError):
    """Raised when a manuscript file format is not accepted."""

    def __init__(self, file_format: str) -> None:
        super().__init__(
            f"Unsupported file format `{file_format}`; supported: epub, pdf, txt."
        )
        self.file_format = file_format


class MissingFileError(ValidationError):
    """Raised when a manuscript path does not exist."""


class StructureParseError(RuntimeError):
    """Raised when a manuscript cannot be decoded into a document tree."""


class ContentExtractionError(StructureParseError):
    """Raised when no usable content can be extracted from a manuscript."""


class InvalidTransitionError(RuntimeError):
    """Raised when a volume status change is not an allowed edge."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Volume cannot transition from `{current}` to `{requested}`.")
        self.current = current
        self.requested = requested


class VolumeNotFoundError(LookupError):
    """Raised when a volume or book id is unknown to the repository."""


class ProviderError(RuntimeError):
    """Raised when an LLM or image provider request fails.

    Attributes:
        failure_kind: Deterministic classification used for retry and hints.
        status_code: HTTP status code when the failure came from a response.
        retryable: Whether the failure is transient (rate limit, unavailable, timeout).
    """

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        retryable: bool = False,
        retry_after_seconds: float | None = None,
    ) -> None:
        """Initialize provider error metadata for retry and diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after_seconds = retry_after_seconds

    @property
    def is_rate_limit(self) -> bool:
        """Return whether the provider signaled a rate limit."""

        return self.failure_kind == "rate_limited" or self.status_code == 429


class QuotaExceededError(ProviderError):
    """Raised when the rolling daily request quota is exhausted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, failure_kind="quota_exceeded")


class RateLimitTimeoutError(ProviderError):
    """Raised when a rate-limiter token is not available before the deadline."""

    def __init__(self, message: str) -> None:
        super().__init__(message, failure_kind="rate_limited")

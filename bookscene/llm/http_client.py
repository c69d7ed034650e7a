"""Shared HTTP transport for LLM and image provider clients.

Responsibilities:
- Send JSON POST requests with `requests`, always with a timeout.
- Apply the rate limiter and daily quota before every attempt.
- Retry transient failures (429, 503, timeouts, model loading) with
  capped exponential backoff, honoring provider wait hints.
- Map every other failure to a classified, redacted `ProviderError`.
"""

from __future__ import annotations

import json
import re
import socket
import time
from typing import Any

import requests

from ..errors import ProviderError
from ..telemetry.logger import RunLogger
from .rate_limiter import DailyQuota, RateLimiter

_RETRYABLE_KINDS = frozenset({"rate_limited", "unavailable", "timeout"})
_RATE_LIMIT_RESET_RE = re.compile(r"(?:^|;)\s*t=(\d+(?:\.\d+)?)")
_SECONDS_RE = re.compile(r"\d+(?:\.\d+)?")


class ProviderHttpClient:
    """Base class carrying timeout, pacing, and retry settings for one provider."""

    provider_name = "provider"
    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str,
        timeout_seconds: float = 120.0,
        max_retries: int = 3,
        retry_backoff_base_seconds: float = 1.0,
        retry_backoff_max_seconds: float = 30.0,
        rate_limiter: RateLimiter | None = None,
        daily_quota: DailyQuota | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        """Initialize provider HTTP settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.retry_backoff_base_seconds = retry_backoff_base_seconds
        self.retry_backoff_max_seconds = retry_backoff_max_seconds
        self.rate_limiter = rate_limiter
        self.daily_quota = daily_quota
        self.run_logger = run_logger
        self.retry_attempt_count = 0

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise ProviderError(
                f"Missing {self.provider_name} API key.",
                failure_kind="invalid_api_key",
            )

    def _auth_headers(self) -> dict[str, str]:
        """Return provider authentication headers; bearer token by default."""

        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def _post(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """POST `payload` as JSON, retrying transient failures.

        Raises:
            ProviderError: The request failed permanently or retries ran out.
        """

        request_timeout = timeout if timeout is not None else self.timeout_seconds
        request_headers = {"Content-Type": "application/json", **self._auth_headers()}
        if headers:
            request_headers.update(headers)

        attempt = 0
        while True:
            if self.rate_limiter is not None:
                self.rate_limiter.acquire(request_timeout)
            if self.daily_quota is not None:
                self.daily_quota.consume()
            try:
                return self._send(url, payload, request_headers, request_timeout)
            except ProviderError as exc:
                if not exc.retryable or attempt >= self.max_retries:
                    raise
                delay = self._retry_delay(attempt, exc.retry_after_seconds)
                attempt += 1
                self.retry_attempt_count += 1
                if self.run_logger is not None:
                    self.run_logger.log_event(
                        "WARNING",
                        "retry",
                        "provider",
                        provider=self.provider_name,
                        attempt=attempt,
                        failure_kind=exc.failure_kind,
                        delay_seconds=f"{delay:.2f}",
                    )
                time.sleep(delay)

    def _send(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> requests.Response:
        """Execute one HTTP attempt and map failures consistently."""

        try:
            response = requests.post(url, headers=headers, json=payload, timeout=timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = f"{self.provider_name} request timed out."
            else:
                detail = (
                    f"{self.provider_name} request transport error: "
                    f"{self._short_message(str(exc))}"
                )
            raise ProviderError(
                detail,
                failure_kind=failure_kind,
                retryable=failure_kind in _RETRYABLE_KINDS,
            ) from exc
        except TimeoutError as exc:
            raise ProviderError(
                f"{self.provider_name} request timed out.",
                failure_kind="timeout",
                retryable=True,
            ) from exc
        return response

    def _retry_delay(self, attempt: int, retry_after_seconds: float | None) -> float:
        """Return the provider hint when present, else capped exponential backoff."""

        if retry_after_seconds is not None and retry_after_seconds > 0:
            return retry_after_seconds
        backoff = self.retry_backoff_base_seconds * (2**attempt)
        return min(backoff, self.retry_backoff_max_seconds)

    def _decode_json(self, response: requests.Response) -> Any:
        """Decode a JSON response body into Python values."""

        try:
            return json.loads(bytes(response.content).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProviderError(
                f"{self.provider_name} returned an invalid JSON payload.",
                failure_kind="malformed_response",
            ) from exc

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        return bytes(response.content).decode("utf-8", errors="replace").strip()

    @staticmethod
    def _retry_after_hint(response: requests.Response | None) -> float | None:
        """Read `Retry-After` seconds or the Hugging Face `RateLimit: ...;t=<s>` hint."""

        if response is None:
            return None
        headers = response.headers
        retry_after = (headers.get("Retry-After") or "").strip()
        if _SECONDS_RE.fullmatch(retry_after):
            return float(retry_after)
        rate_limit = headers.get("RateLimit")
        if rate_limit:
            match = _RATE_LIMIT_RESET_RE.search(rate_limit)
            if match:
                return float(match.group(1))
        return None

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\b(?:sk|hf)[-_][A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(r"\bAIza[0-9A-Za-z_-]{20,}\b", "[redacted-key]", redacted)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> str:
        """Extract a concise provider-facing message from an error body."""

        if not body:
            return ""
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body))

        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()
            elif isinstance(error_payload, str) and error_payload.strip():
                message = error_payload.strip()
        return cls._short_message(cls._redact_sensitive_tokens(message or body))

    @staticmethod
    def _classify_http_failure(status_code: int, provider_message: str) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if status_code == 429 or "resource_exhausted" in message_lower:
            return "rate_limited"
        if status_code == 503 or "loading" in message_lower:
            return "unavailable"
        if status_code in {408, 504} or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    def _http_error_to_provider_error(self, exc: requests.HTTPError) -> ProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        provider_message = self._extract_provider_message(self._decode_error_body(exc))
        failure_kind = self._classify_http_failure(status_code, provider_message)

        headline = {
            "invalid_api_key": f"{self.provider_name} authentication failed",
            "rate_limited": f"{self.provider_name} rate limit reached",
            "unavailable": f"{self.provider_name} is temporarily unavailable",
            "timeout": f"{self.provider_name} request timed out",
        }.get(failure_kind, f"{self.provider_name} request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return ProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            retryable=failure_kind in _RETRYABLE_KINDS,
            retry_after_seconds=self._retry_after_hint(exc.response),
        )

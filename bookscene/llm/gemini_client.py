"""Google Gemini `generateContent` client producing schema-constrained JSON.

Responsibilities:
- Call the Gemini REST API with a JSON response MIME type and schema.
- Apply the published per-model request-per-minute and daily limits.
- Translate JSON-schema dicts into Gemini's uppercase schema dialect.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import ProviderError
from .http_client import ProviderHttpClient
from .rate_limiter import DailyQuota, TokenBucketRateLimiter

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-lite"


@dataclass(frozen=True, slots=True)
class GeminiModelLimits:
    """Free-tier pacing for one Gemini model; `daily_requests=0` is unlimited."""

    requests_per_minute: int
    burst: int
    daily_requests: int


GEMINI_MODEL_LIMITS: dict[str, GeminiModelLimits] = {
    "gemini-2.5-flash-lite": GeminiModelLimits(15, 3, 1000),
    "gemini-2.5-flash": GeminiModelLimits(10, 2, 200),
    "gemini-2.5-pro": GeminiModelLimits(5, 1, 50),
    "gemini-2.0-flash": GeminiModelLimits(10, 2, 0),
}


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a JSON-schema subset to Gemini's `Schema` object shape."""

    converted: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted["type"] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            converted["properties"] = {
                name: to_gemini_schema(child) for name, child in value.items()
            }
        elif key == "items" and isinstance(value, dict):
            converted["items"] = to_gemini_schema(value)
        elif key in {"required", "description", "enum"}:
            converted[key] = value
    return converted


class GeminiJsonClient(ProviderHttpClient):
    """Gemini REST client implementing `LLMService`."""

    provider_name = "Gemini"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        **settings: Any,
    ) -> None:
        limits = GEMINI_MODEL_LIMITS.get(model)
        if limits is None:
            supported = ", ".join(sorted(GEMINI_MODEL_LIMITS))
            raise ValueError(f"Unsupported Gemini model `{model}`; supported: {supported}.")
        settings.setdefault(
            "rate_limiter",
            TokenBucketRateLimiter(limits.requests_per_minute, limits.burst),
        )
        settings.setdefault("daily_quota", DailyQuota(limits.daily_requests))
        super().__init__(api_key=api_key, base_url=base_url, **settings)
        self.model = model
        self.limits = limits

    def _auth_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key} if self.api_key else {}

    def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        """Return the first non-empty text part of the first candidate."""

        self._require_api_key()

        generation_config: dict[str, Any] = {"responseMimeType": "application/json"}
        if schema is not None:
            generation_config["responseSchema"] = to_gemini_schema(schema)
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": generation_config,
        }
        response = self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            payload,
            timeout=timeout,
        )
        return self._extract_text(self._decode_json(response))

    @staticmethod
    def _extract_text(payload: Any) -> str:
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if isinstance(candidates, list) and candidates:
            content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
            parts = content.get("parts") if isinstance(content, dict) else None
            for part in parts if isinstance(parts, list) else []:
                text = part.get("text") if isinstance(part, dict) else None
                if isinstance(text, str) and text.strip():
                    return text
        raise ProviderError("Empty response from Gemini.", failure_kind="malformed_response")

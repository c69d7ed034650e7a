"""Hugging Face inference client for text-to-image generation.

Responsibilities:
- POST prompts to the inference router with `wait_for_model` enabled.
- Reject JSON bodies on HTTP 200 (the API's way of reporting errors).
- Return generated image bytes as a base64 string.
"""

from __future__ import annotations

import base64
from typing import Any

from ..errors import ProviderError
from ..llm.http_client import ProviderHttpClient
from ..llm.rate_limiter import TokenBucketRateLimiter

DEFAULT_HF_BASE_URL = "https://router.huggingface.co/hf-inference/models"
DEFAULT_HF_MODEL = "stabilityai/stable-diffusion-xl-base-1.0"


class HuggingFaceImageClient(ProviderHttpClient):
    """Diffusers inference client implementing `ImageService`."""

    provider_name = "Hugging Face"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = DEFAULT_HF_MODEL,
        base_url: str = DEFAULT_HF_BASE_URL,
        **settings: Any,
    ) -> None:
        settings.setdefault("rate_limiter", TokenBucketRateLimiter(120, burst=5))
        settings.setdefault("max_retries", 5)
        settings.setdefault("retry_backoff_base_seconds", 2.0)
        super().__init__(api_key=api_key, base_url=base_url, **settings)
        self.model = model.strip("/")

    def generate_image(self, prompt: str) -> str:
        """Generate one image and return it base64-encoded."""

        self._require_api_key()

        response = self._post(
            f"{self.base_url}/{self.model}",
            {"inputs": prompt, "options": {"wait_for_model": True}},
            headers={"Accept": "image/png"},
        )
        content_type = (response.headers.get("Content-Type") or "").lower()
        body = bytes(response.content)
        if content_type.startswith("application/json") or body.lstrip().startswith(b"{"):
            message = self._short_message(
                self._redact_sensitive_tokens(body.decode("utf-8", errors="replace"))
            )
            raise ProviderError(
                f"Hugging Face returned JSON instead of an image: {message}",
                failure_kind="unexpected_content_type",
                status_code=response.status_code,
            )
        if not body:
            raise ProviderError(
                "Hugging Face returned an empty image body.",
                failure_kind="malformed_response",
            )
        return base64.b64encode(body).decode("ascii")

"""OpenAI chat-completions client producing schema-constrained JSON.

Responsibilities:
- Send chat-completions requests with a `json_schema` response format.
- Normalize message extraction across string and content-part variants.
"""

from __future__ import annotations

from typing import Any

from ..errors import ProviderError
from .http_client import ProviderHttpClient

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"


class OpenAIJsonClient(ProviderHttpClient):
    """Minimal requests-based OpenAI client implementing `LLMService`."""

    provider_name = "OpenAI"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = DEFAULT_OPENAI_MODEL,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        **settings: Any,
    ) -> None:
        super().__init__(api_key=api_key, base_url=base_url, **settings)
        self.model = model

    def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        """Return the first assistant message, constrained to `schema` when given."""

        self._require_api_key()

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.0,
        }
        if schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": schema, "strict": False},
            }
        else:
            payload["response_format"] = {"type": "json_object"}

        response = self._post(f"{self.base_url}/chat/completions", payload, timeout=timeout)
        return self._extract_message_text(self._decode_json(response))

    @staticmethod
    def _extract_message_text(payload: Any) -> str:
        """Extract first assistant message text from a chat-completions payload."""

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ProviderError(
                "OpenAI response missing non-empty `choices` list.",
                failure_kind="malformed_response",
            )

        first_choice = choices[0]
        message = first_choice.get("message") if isinstance(first_choice, dict) else None
        if not isinstance(message, dict):
            raise ProviderError(
                "OpenAI response missing `choices[0].message` object.",
                failure_kind="malformed_response",
            )

        text = OpenAIJsonClient._message_content_to_text(message.get("content")).strip()
        if not text:
            raise ProviderError(
                "OpenAI response message content is empty.",
                failure_kind="malformed_response",
            )
        return text

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert OpenAI message content variants into a plain text string."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                item["text"]
                for item in content
                if isinstance(item, dict)
                and item.get("type") == "text"
                and isinstance(item.get("text"), str)
            )
        return ""

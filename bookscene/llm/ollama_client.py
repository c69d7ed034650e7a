"""Local Ollama `/api/generate` client."""

from __future__ import annotations

from typing import Any

from ..errors import ProviderError
from .http_client import ProviderHttpClient

DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3.1"


class OllamaJsonClient(ProviderHttpClient):
    """Unauthenticated Ollama client implementing `LLMService`.

    System and user prompts are folded into one prompt string; the schema,
    when given, is passed as Ollama's structured-output `format`.
    """

    provider_name = "Ollama"

    def __init__(
        self,
        *,
        model: str = DEFAULT_OLLAMA_MODEL,
        host: str = DEFAULT_OLLAMA_HOST,
        **settings: Any,
    ) -> None:
        super().__init__(api_key=None, base_url=host, **settings)
        self.model = model

    def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        payload = {
            "model": self.model,
            "prompt": f"System: {system_prompt}\n\nUser: {user_prompt}",
            "stream": False,
            "format": schema if schema is not None else "json",
        }
        response = self._post(f"{self.base_url}/api/generate", payload, timeout=timeout)
        body = self._decode_json(response)
        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ProviderError("Empty response from Ollama.", failure_kind="malformed_response")
        return text

"""LLM-facing provider clients, prompts, and pacing.

This package defines the `LLMService` contract, the Gemini/OpenAI/Ollama
clients built on a shared retrying HTTP transport, and the prompt and
schema library used by metadata inference and scene generation.
"""

from .gemini_client import GEMINI_MODEL_LIMITS, GeminiJsonClient
from .http_client import ProviderHttpClient
from .ollama_client import OllamaJsonClient
from .openai_client import OpenAIJsonClient
from .prompts import METADATA_SCHEMA, SCENE_SCHEMA, PromptLibrary
from .rate_limiter import DailyQuota, RateLimiter, TokenBucketRateLimiter
from .service import LLMService, parse_metadata_response, parse_scene_response

__all__ = [
    "DailyQuota",
    "GEMINI_MODEL_LIMITS",
    "GeminiJsonClient",
    "LLMService",
    "METADATA_SCHEMA",
    "OllamaJsonClient",
    "OpenAIJsonClient",
    "PromptLibrary",
    "ProviderHttpClient",
    "RateLimiter",
    "SCENE_SCHEMA",
    "TokenBucketRateLimiter",
    "parse_metadata_response",
    "parse_scene_response",
]

"""Provider factory for LLM, image, and storage backends.

Responsibilities:
- Map configured provider identifiers to a closed set of implementations.
- Construct every backend once at startup with the run's timeouts and keys.
"""

from __future__ import annotations

from enum import Enum

from .config import BooksceneConfig
from .images import DummyImageService, HuggingFaceImageClient, ImageService
from .images.huggingface_client import DEFAULT_HF_MODEL
from .io.storage import LocalStorage, StorageService
from .llm.gemini_client import DEFAULT_GEMINI_MODEL, GeminiJsonClient
from .llm.ollama_client import DEFAULT_OLLAMA_MODEL, OllamaJsonClient
from .llm.openai_client import DEFAULT_OPENAI_MODEL, OpenAIJsonClient
from .llm.service import LLMService
from .telemetry.logger import RunLogger


class LlmProvider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    OLLAMA = "ollama"


class ImageProvider(str, Enum):
    HUGGING_FACE = "hugging-face"
    DUMMY = "dummy"


class StorageDriver(str, Enum):
    LOCAL = "local"


def _resolve(enum_type: type[Enum], value: str, label: str) -> Enum:
    try:
        return enum_type(value)
    except ValueError as exc:
        supported = ", ".join(member.value for member in enum_type)
        raise ValueError(f"Unsupported {label} `{value}`; supported: {supported}.") from exc


class ProviderFactory:
    """Factory for provider-backed services used by the pipeline."""

    @staticmethod
    def create_llm_service(
        config: BooksceneConfig,
        api_key: str | None = None,
        run_logger: RunLogger | None = None,
    ) -> LLMService:
        """Create the LLM client for `config.llm_provider`."""

        provider = _resolve(LlmProvider, config.llm_provider, "LLM provider")
        settings = {
            "timeout_seconds": config.request_timeout_seconds,
            "run_logger": run_logger,
        }
        if provider is LlmProvider.GEMINI:
            return GeminiJsonClient(
                api_key=api_key, model=config.llm_model or DEFAULT_GEMINI_MODEL, **settings
            )
        if provider is LlmProvider.OPENAI:
            return OpenAIJsonClient(
                api_key=api_key, model=config.llm_model or DEFAULT_OPENAI_MODEL, **settings
            )
        return OllamaJsonClient(
            model=config.llm_model or DEFAULT_OLLAMA_MODEL, host=config.llm_host, **settings
        )

    @staticmethod
    def create_image_service(
        config: BooksceneConfig,
        api_key: str | None = None,
        run_logger: RunLogger | None = None,
    ) -> ImageService:
        """Create the image service for `config.image_provider`."""

        provider = _resolve(ImageProvider, config.image_provider, "image provider")
        if provider is ImageProvider.HUGGING_FACE:
            return HuggingFaceImageClient(
                api_key=api_key,
                model=config.image_model or DEFAULT_HF_MODEL,
                timeout_seconds=config.request_timeout_seconds,
                run_logger=run_logger,
            )
        return DummyImageService()

    @staticmethod
    def create_storage(config: BooksceneConfig) -> StorageService:
        """Create and initialize the manuscript storage driver."""

        _resolve(StorageDriver, config.storage_driver, "storage driver")
        storage = LocalStorage(config.resolved_storage_path())
        storage.init()
        return storage

"""Configuration model and loaders for Bookscene.

Responsibilities:
- Define runtime configuration as a typed dataclass with validation.
- Load configuration from `BOOKSCENE_*` environment variables or YAML files.
- Resolve provider API keys with deterministic precedence:
  CLI > secure storage > environment > config value.

Key types:
- `BooksceneConfig`: normalized settings for dispatcher, pipeline, and providers.
- `RuntimeConfigSources`: optional value sources for API key precedence.
- `ResolvedApiKeys`: API keys picked for one run (never persisted).
- `ConfigLoader`: static construction helpers for `BooksceneConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_non_negative_float,
    parse_positive_int,
)

SUPPORTED_STORAGE_DRIVERS = frozenset({"local"})
SUPPORTED_LLM_PROVIDERS = frozenset({"gemini", "openai", "ollama"})
SUPPORTED_IMAGE_PROVIDERS = frozenset({"hugging-face", "dummy"})

LLM_API_KEY_ENV = "LLM_API_KEY"
IMAGE_API_KEY_ENV = "IMAGE_API_KEY"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ResolvedApiKeys:
    llm_api_key: str | None = None
    image_api_key: str | None = None


@dataclass(slots=True)
class BooksceneConfig:
    """Runtime configuration resolved once at startup.

    Attributes:
        data_dir: Root directory for repository documents.
        storage_driver: Manuscript storage driver (`local`).
        storage_path: Upload directory; defaults to `<data_dir>/uploads`.
        llm_provider: LLM provider (`gemini`, `openai`, `ollama`).
        llm_model: Provider model; `None` picks the provider default.
        llm_host: Ollama host URL.
        llm_api_key: Optional LLM API key.
        image_provider: Image provider (`hugging-face`, `dummy`).
        image_model: Image model; `None` picks the provider default.
        image_api_key: Optional image API key.
        worker_count: Dispatcher worker threads.
        queue_size: Dispatcher queue capacity.
        max_retries: Attempts per chapter and per image.
        retry_delay_seconds: Base delay for exponential retry backoff.
        rate_limit_cooldown_seconds: Wait after a rate-limit error during scene generation.
        request_timeout_seconds: Default provider HTTP timeout.
        metadata_timeout_seconds: Timeout for metadata inference calls.
        scene_timeout_seconds: Timeout for scene generation calls.
        section_word_limit: Maximum words per parsed section.
    """

    data_dir: Path = Path("bookscene-data")
    storage_driver: str = "local"
    storage_path: Path | None = None
    llm_provider: str = "gemini"
    llm_model: str | None = None
    llm_host: str = "http://localhost:11434"
    llm_api_key: str | None = None
    image_provider: str = "dummy"
    image_model: str | None = None
    image_api_key: str | None = None
    worker_count: int = 2
    queue_size: int = 100
    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    rate_limit_cooldown_seconds: float = 60.0
    request_timeout_seconds: float = 120.0
    metadata_timeout_seconds: float = 30.0
    scene_timeout_seconds: float = 60.0
    section_word_limit: int = 1000

    def validate(self) -> None:
        """Validate configuration values before any component is built."""

        self._validate_choice(self.storage_driver, "storage_driver", SUPPORTED_STORAGE_DRIVERS)
        self._validate_choice(self.llm_provider, "llm_provider", SUPPORTED_LLM_PROVIDERS)
        self._validate_choice(self.image_provider, "image_provider", SUPPORTED_IMAGE_PROVIDERS)
        for name in ("worker_count", "queue_size", "max_retries", "section_word_limit"):
            if getattr(self, name) < 1:
                raise ValueError(f"`{name}` must be a positive integer.")
        for name in (
            "retry_delay_seconds",
            "rate_limit_cooldown_seconds",
            "request_timeout_seconds",
            "metadata_timeout_seconds",
            "scene_timeout_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"`{name}` must be a non-negative number.")

    def resolved_storage_path(self) -> Path:
        return self.storage_path if self.storage_path is not None else self.data_dir / "uploads"

    def resolved_api_keys(self, sources: RuntimeConfigSources | None = None) -> ResolvedApiKeys:
        """Resolve API keys; precedence is `cli` > `secure` > `env` > config value."""

        resolved_sources = sources if sources is not None else RuntimeConfigSources()
        return ResolvedApiKeys(
            llm_api_key=self._resolve_optional_value(
                "llm_api_key", LLM_API_KEY_ENV, self.llm_api_key, resolved_sources
            ),
            image_api_key=self._resolve_optional_value(
                "image_api_key", IMAGE_API_KEY_ENV, self.image_api_key, resolved_sources
            ),
        )

    @staticmethod
    def _resolve_optional_value(
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            value = normalize_optional_string(mapping.get(lookup_key))
            if value is not None:
                return value
        return normalize_optional_string(default_value)

    @staticmethod
    def _validate_choice(value: str, field_name: str, supported: frozenset[str]) -> None:
        if value not in supported:
            choices = ", ".join(sorted(supported))
            raise ValueError(f"Unsupported `{field_name}` value `{value}`; supported: {choices}.")


_PATH_FIELDS = frozenset({"data_dir", "storage_path"})
_INT_FIELDS = frozenset({"worker_count", "queue_size", "max_retries", "section_word_limit"})
_FLOAT_FIELDS = frozenset(
    {
        "retry_delay_seconds",
        "rate_limit_cooldown_seconds",
        "request_timeout_seconds",
        "metadata_timeout_seconds",
        "scene_timeout_seconds",
    }
)
_ENV_OVERRIDES = {"llm_api_key": LLM_API_KEY_ENV, "image_api_key": IMAGE_API_KEY_ENV}


class ConfigLoader:
    """Factory methods for creating `BooksceneConfig` from external sources."""

    SUPPORTED_KEYS = frozenset(item.name for item in fields(BooksceneConfig))

    @staticmethod
    def env_key(field_name: str) -> str:
        """Return the environment variable name for one config field."""

        return _ENV_OVERRIDES.get(field_name, f"BOOKSCENE_{field_name.upper()}")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> BooksceneConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for name in sorted(ConfigLoader.SUPPORTED_KEYS):
            value = normalize_optional_string(env_map.get(ConfigLoader.env_key(name)))
            if value is not None:
                payload[name] = value
        return ConfigLoader._build_config_from_mapping(payload, source_label="Environment")

    @staticmethod
    def from_yaml(path: Path) -> BooksceneConfig:
        """Create a validated config from a YAML file."""

        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` is not valid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> BooksceneConfig:
        """Convert raw mapping values to typed fields and validate the result."""

        unknown = sorted(str(key) for key in payload if key not in ConfigLoader.SUPPORTED_KEYS)
        if unknown:
            raise ValueError(
                f"{source_label} includes unsupported key(s): {', '.join(unknown)}."
            )

        values: dict[str, Any] = {}
        for key, raw_value in payload.items():
            if raw_value is None:
                continue
            try:
                values[key] = ConfigLoader._convert_value(key, raw_value)
            except ValueError as exc:
                raise ValueError(f"{source_label}: {exc}") from exc

        config = BooksceneConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _convert_value(key: str, raw_value: Any) -> Any:
        if key in _PATH_FIELDS:
            text = normalize_optional_string(raw_value)
            if text is None:
                raise ValueError(f"`{key}` must be a non-empty path.")
            return Path(text).expanduser()
        if key in _INT_FIELDS:
            return parse_positive_int(raw_value, key)
        if key in _FLOAT_FIELDS:
            return parse_non_negative_float(raw_value, key)
        text = normalize_optional_string(raw_value)
        if text is None:
            raise ValueError(f"`{key}` must be a non-empty string.")
        return text

"""CLI runtime wiring helpers.

This module isolates config loading, API-key source assembly, and
construction of the repository, dispatcher, and pipeline from the command
wiring layer.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Callable, Protocol

from .config import BooksceneConfig, ConfigLoader, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import PipelineStageError
from .io.repository import JsonVolumeRepository
from .jobs.dispatcher import JobDispatcher
from .parsing import normalize_optional_string
from .pipeline import VolumeEnhancementPipeline, VolumeIntake
from .provider_factory import ProviderFactory
from .telemetry.logger import RunLogger


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential reads used by CLI runtime resolution."""

    def load_all(self) -> dict[str, str]:
        """Return every stored API key by config field name."""


@dataclass(slots=True)
class CliRuntime:
    """Components built once per command invocation."""

    config: BooksceneConfig
    repository: JsonVolumeRepository
    intake: VolumeIntake
    pipeline: VolumeEnhancementPipeline
    dispatcher: JobDispatcher
    run_logger: RunLogger


def load_command_config(config_path: Path | None, data_dir: Path | None = None) -> BooksceneConfig:
    """Load YAML or environment config, apply CLI overrides, and validate."""

    try:
        config = (
            ConfigLoader.from_yaml(config_path)
            if config_path is not None
            else ConfigLoader.from_env()
        )
        if data_dir is not None:
            config = replace(config, data_dir=data_dir)
        config.validate()
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        source = f"config file `{config_path}`" if config_path is not None else "environment"
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid {source}: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    return config


def resolve_runtime_sources(
    llm_api_key: str | None,
    image_api_key: str | None,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> RuntimeConfigSources:
    """Assemble CLI, secure-storage, and environment sources for API key precedence."""

    cli_values: dict[str, str] = {}
    for key, value in (("llm_api_key", llm_api_key), ("image_api_key", image_api_key)):
        normalized = normalize_optional_string(value)
        if normalized is not None:
            cli_values[key] = normalized

    return RuntimeConfigSources(
        cli=cli_values,
        secure=credential_store_factory().load_all(),
        env=os.environ,
    )


def open_repository(config: BooksceneConfig) -> JsonVolumeRepository:
    return JsonVolumeRepository(config.data_dir / "records")


def build_runtime(
    config: BooksceneConfig,
    sources: RuntimeConfigSources,
    run_logger: RunLogger,
) -> CliRuntime:
    """Build providers, storage, repository, pipeline, and dispatcher from `config`.

    Raises:
        PipelineStageError: A provider or storage driver could not be created.
    """

    api_keys = config.resolved_api_keys(sources)
    repository = open_repository(config)
    try:
        storage = ProviderFactory.create_storage(config)
        llm = ProviderFactory.create_llm_service(config, api_keys.llm_api_key, run_logger)
        image_service = ProviderFactory.create_image_service(
            config, api_keys.image_api_key, run_logger
        )
    except (ValueError, OSError) as exc:
        raise PipelineStageError(
            stage="providers",
            detail=f"Failed to initialize providers: {exc}",
            hint="Check `llm_provider`, `image_provider`, model ids, and storage paths.",
        ) from exc

    pipeline = VolumeEnhancementPipeline(
        repository=repository,
        llm=llm,
        image_service=image_service,
        config=config,
        run_logger=run_logger,
    )
    return CliRuntime(
        config=config,
        repository=repository,
        intake=VolumeIntake(repository, storage, run_logger),
        pipeline=pipeline,
        dispatcher=JobDispatcher(
            worker_count=config.worker_count,
            queue_size=config.queue_size,
            run_logger=run_logger,
        ),
        run_logger=run_logger,
    )

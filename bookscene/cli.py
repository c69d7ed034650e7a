"""Command-line interface for Bookscene.

Responsibilities:
- Expose user-facing commands for volume processing and inspection.
- Submit pipeline work through the job dispatcher and poll its progress.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from pathlib import Path
import time
from typing import Annotated

import typer

from .cli_rendering import (
    JobProgressIndicator,
    echo_chapter_list,
    echo_volume_report,
    exit_with_command_error,
)
from .cli_runtime import (
    CliRuntime,
    build_runtime,
    load_command_config,
    open_repository,
    resolve_runtime_sources,
)
from .credentials import CREDENTIAL_ACCOUNTS, create_credential_store
from .errors import (
    MissingFileError,
    PipelineStageError,
    StructureParseError,
    ValidationError,
    VolumeNotFoundError,
)
from .io.structure_extractor import StructureExtractor
from .jobs.models import PROGRESS_FAILED, status_for
from .jobs.volume_job import JobMode, VolumeProcessingJob
from .parsing import normalize_file_format, normalize_optional_string
from .pipeline.report import VolumeReport
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="bookscene",
    no_args_is_help=True,
    help="Bookscene CLI.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with command defaults."),
]
DataDirOption = Annotated[
    Path | None,
    typer.Option("--out", help="Data directory (overrides config `data_dir`)."),
]
LlmKeyOption = Annotated[
    str | None,
    typer.Option("--llm-api-key", help="LLM provider API key override."),
]
ImageKeyOption = Annotated[
    str | None,
    typer.Option("--image-api-key", help="Image provider API key override."),
]
PollIntervalOption = Annotated[
    float,
    typer.Option("--poll-interval", min=0.0, help="Seconds between progress polls."),
]


def _validate_input_file(input_file: Path) -> str:
    """Return the manuscript format or raise a `validate` stage error."""

    try:
        file_format = normalize_file_format(input_file.name)
        if not input_file.is_file():
            raise MissingFileError(f"Manuscript file not found: `{input_file}`.")
    except ValidationError as exc:
        raise PipelineStageError(
            stage="validate",
            detail=str(exc),
            hint="Pass an existing `.epub`, `.pdf`, or `.txt` file.",
        ) from exc
    return file_format


def _run_job(
    runtime: CliRuntime,
    job: VolumeProcessingJob,
    command_name: str,
    poll_interval: float,
) -> int:
    """Enqueue `job`, print progress until it settles, and return the final value."""

    indicator = JobProgressIndicator(command_name=command_name, job_id=job.job_id)
    try:
        if not runtime.dispatcher.enqueue(job.job_id, job):
            raise PipelineStageError(
                stage="dispatch",
                detail=f"Job `{job.job_id}` was rejected by the dispatcher.",
                hint="Wait for running jobs to finish or raise `queue_size`.",
            )
        while True:
            progress = runtime.dispatcher.get_progress(job.job_id)
            indicator.on_progress(progress)
            if status_for(progress) != "processing":
                return progress
            time.sleep(poll_interval)
    finally:
        runtime.dispatcher.shutdown()


def _failure_from_report(report: VolumeReport, stage: str) -> PipelineStageError:
    detail = report.parse_errors[0] if report.parse_errors else "Volume processing failed."
    return PipelineStageError(
        stage=stage,
        detail=detail,
        hint=f"Run `bookscene status {report.volume_id}` for details.",
    )


@app.command("process")
def process_command(
    input_file: Annotated[Path, typer.Argument(help="Manuscript file (.epub, .pdf, .txt).")],
    config_file: ConfigOption = None,
    out: DataDirOption = None,
    book_title: Annotated[
        str | None,
        typer.Option("--book-title", help="Title for the new book record."),
    ] = None,
    llm_api_key: LlmKeyOption = None,
    image_api_key: ImageKeyOption = None,
    poll_interval: PollIntervalOption = 0.5,
) -> None:
    """Upload a manuscript, then parse and enhance it."""

    try:
        config = load_command_config(config_file, out)
        _validate_input_file(input_file)
        runtime = build_runtime(
            config,
            resolve_runtime_sources(llm_api_key, image_api_key),
            RunLogger(),
        )
        with input_file.open("rb") as handle:
            volume = runtime.intake.create_volume(input_file.name, handle, book_title)
        job = VolumeProcessingJob(runtime.pipeline, volume.id, JobMode.PROCESS)
        typer.echo(f"Volume id: {volume.id}")
        typer.echo(f"Job id: {job.job_id}")
        final_progress = _run_job(runtime, job, "process", poll_interval)
        report = runtime.pipeline.describe_volume(volume.id)
    except Exception as exc:
        exit_with_command_error("process", exc)

    echo_volume_report(report)
    if final_progress == PROGRESS_FAILED:
        exit_with_command_error("process", _failure_from_report(report, "process"))


@app.command("chapters")
def chapters_command(
    input_file: Annotated[Path, typer.Argument(help="Manuscript file (.epub, .pdf, .txt).")],
    config_file: ConfigOption = None,
) -> None:
    """Run only structural extraction and list detected chapters."""

    try:
        config = load_command_config(config_file)
        file_format = _validate_input_file(input_file)
        extractor = StructureExtractor(section_word_limit=config.section_word_limit)
        parsed = extractor.extract(input_file, file_format)
    except StructureParseError as exc:
        exit_with_command_error(
            "chapters",
            PipelineStageError(
                stage="parse",
                detail=str(exc),
                hint="Verify the file is a readable, text-based manuscript.",
            ),
        )
    except Exception as exc:
        exit_with_command_error("chapters", exc)

    echo_chapter_list(parsed)


def _regenerate(
    command_name: str,
    mode: JobMode,
    volume_id: int,
    config_file: Path | None,
    out: Path | None,
    llm_api_key: str | None,
    image_api_key: str | None,
    poll_interval: float,
) -> None:
    try:
        config = load_command_config(config_file, out)
        open_repository(config).get_volume(volume_id)
        runtime = build_runtime(
            config,
            resolve_runtime_sources(llm_api_key, image_api_key),
            RunLogger(),
        )
        job = VolumeProcessingJob(runtime.pipeline, volume_id, mode)
        final_progress = _run_job(runtime, job, command_name, poll_interval)
        report = runtime.pipeline.describe_volume(volume_id)
    except VolumeNotFoundError as exc:
        exit_with_command_error(
            command_name,
            PipelineStageError(
                stage="lookup",
                detail=str(exc),
                hint="Use the volume id printed by `bookscene process`.",
            ),
        )
    except Exception as exc:
        exit_with_command_error(command_name, exc)

    echo_volume_report(report)
    if final_progress != PROGRESS_FAILED:
        return
    if report.status == "error":
        exit_with_command_error(command_name, _failure_from_report(report, mode.value))
    exit_with_command_error(
        command_name,
        PipelineStageError(
            stage=mode.value,
            detail=f"Volume {volume_id} cannot be regenerated in status `{report.status}`.",
            hint="Only parsed, completed, or failed volumes can be regenerated.",
        ),
    )


@app.command("regenerate-scenes")
def regenerate_scenes_command(
    volume_id: Annotated[int, typer.Argument(help="Volume id.")],
    config_file: ConfigOption = None,
    out: DataDirOption = None,
    llm_api_key: LlmKeyOption = None,
    image_api_key: ImageKeyOption = None,
    poll_interval: PollIntervalOption = 0.5,
) -> None:
    """Clear and regenerate scenes for an existing volume."""

    _regenerate(
        "regenerate-scenes",
        JobMode.SCENES,
        volume_id,
        config_file,
        out,
        llm_api_key,
        image_api_key,
        poll_interval,
    )


@app.command("regenerate-images")
def regenerate_images_command(
    volume_id: Annotated[int, typer.Argument(help="Volume id.")],
    config_file: ConfigOption = None,
    out: DataDirOption = None,
    llm_api_key: LlmKeyOption = None,
    image_api_key: ImageKeyOption = None,
    poll_interval: PollIntervalOption = 0.5,
) -> None:
    """Clear and regenerate scene images for an existing volume."""

    _regenerate(
        "regenerate-images",
        JobMode.IMAGES,
        volume_id,
        config_file,
        out,
        llm_api_key,
        image_api_key,
        poll_interval,
    )


@app.command("status")
def status_command(
    volume_id: Annotated[int, typer.Argument(help="Volume id.")],
    config_file: ConfigOption = None,
    out: DataDirOption = None,
) -> None:
    """Show volume status, counts, and scene/image completeness."""

    try:
        config = load_command_config(config_file, out)
        report = VolumeReport.from_volume(open_repository(config).get_volume(volume_id))
    except VolumeNotFoundError as exc:
        exit_with_command_error(
            "status",
            PipelineStageError(
                stage="lookup",
                detail=str(exc),
                hint="Use the volume id printed by `bookscene process`.",
            ),
        )
    except Exception as exc:
        exit_with_command_error("status", exc)

    echo_volume_report(report)


_CREDENTIAL_LABELS = {"llm_api_key": "LLM API key", "image_api_key": "Image API key"}


@app.command("credentials")
def credentials_command(
    set_llm_key: Annotated[
        bool,
        typer.Option(
            "--set-llm-key",
            help="Prompt for the LLM API key with hidden input and store it securely.",
        ),
    ] = False,
    set_image_key: Annotated[
        bool,
        typer.Option(
            "--set-image-key",
            help="Prompt for the image API key with hidden input and store it securely.",
        ),
    ] = False,
    clear: Annotated[
        bool,
        typer.Option("--clear", help="Clear all stored API keys from secure storage."),
    ] = False,
) -> None:
    """Manage securely stored provider credentials."""

    if sum((set_llm_key, set_image_key, clear)) > 1:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-llm-key`, `--set-image-key`, and `--clear` are exclusive.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    key_name = "llm_api_key" if set_llm_key else "image_api_key" if set_image_key else None
    if key_name is not None:
        label = _CREDENTIAL_LABELS[key_name]
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                f"{label} (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key.",
                ),
            )
        try:
            credential_store.set_api_key(key_name, prompted_api_key)
        except (RuntimeError, ValueError) as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo(f"{label} stored in secure credential storage.")
        return

    if clear:
        for name in CREDENTIAL_ACCOUNTS:
            removed = credential_store.clear_api_key(name)
            outcome = "cleared" if removed else "not stored"
            typer.echo(f"{_CREDENTIAL_LABELS[name]}: {outcome}")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    typer.echo(f"Secure credential storage: {availability}")
    for name in CREDENTIAL_ACCOUNTS:
        status = "present" if credential_store.get_api_key(name) is not None else "not set"
        typer.echo(f"Stored {_CREDENTIAL_LABELS[name]}: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()

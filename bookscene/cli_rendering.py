"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
job progress lines, chapter listings, and volume status summaries.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import PipelineStageError
from .models.datatypes import ParsedVolume
from .pipeline.report import VolumeReport


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


class JobProgressIndicator:
    """Render deterministic progress lines for a polled dispatcher job."""

    _SPINNER_FRAMES = "|/-\\"

    def __init__(self, command_name: str, job_id: str) -> None:
        self._command_name = command_name
        self._job_id = job_id
        self._updates = 0
        self._last: int | None = None

    def on_progress(self, progress: int) -> None:
        """Print one line when `progress` differs from the last printed value."""

        if progress == self._last:
            return
        self._last = progress
        spinner = self._SPINNER_FRAMES[self._updates % len(self._SPINNER_FRAMES)]
        self._updates += 1
        label = "failed" if progress < 0 else f"{progress}%"
        typer.echo(
            f"[progress] command={self._command_name} job={self._job_id} {spinner} {label}"
        )


def echo_chapter_list(parsed: ParsedVolume) -> None:
    """Print detected metadata and compact chapter rows."""

    typer.echo(f"Parse method: {parsed.parse_method.value}")
    if parsed.detected_title:
        typer.echo(f"Title: {parsed.detected_title}")
    if parsed.detected_author:
        typer.echo(f"Author: {parsed.detected_author}")
    for error in parsed.errors:
        typer.secho(f"Warning: {error}", fg=typer.colors.YELLOW)
    for chapter in sorted(parsed.chapters, key=lambda item: item.number):
        typer.echo(
            f"{chapter.number}. {chapter.title} "
            f"({len(chapter.sections)} sections, {chapter.word_count} words, "
            f"{chapter.detection_method})"
        )


def echo_volume_report(report: VolumeReport) -> None:
    """Print volume status, counts, and scene/image completeness."""

    typer.echo(f"Volume: {report.volume_id} (book {report.book_id})")
    typer.echo(f"Title: {report.title}")
    typer.echo(f"Status: {report.status}")
    typer.echo(f"Progress: {report.progress}")
    if report.parse_method:
        typer.echo(f"Parse method: {report.parse_method}")
    typer.echo(
        f"Chapters: {report.chapter_count}  Sections: {report.section_count}  "
        f"Words: {report.word_count}"
    )
    typer.echo(
        f"Scenes: {report.scene_count} "
        f"(with images: {report.scenes_with_images}, "
        f"without images: {report.scenes_without_images})"
    )
    if report.failed_chapters:
        failed = ", ".join(str(number) for number in report.failed_chapters)
        typer.echo(f"Chapters without scenes: {failed}")
    for error in report.parse_errors:
        typer.secho(f"Parse error: {error}", fg=typer.colors.YELLOW)
    if report.completed_at:
        typer.echo(f"Completed at: {report.completed_at}")

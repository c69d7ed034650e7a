"""Phase telemetry helper methods for the enhancement pipeline.

Responsibilities:
- Emit phase start/complete/failure events through `RunLogger`.
- Emit scoped skip events for chapters and scenes without failing the volume.
- Forward progress to the job reporter while keeping the volume record in sync.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from ..io.repository import VolumeRepository
from ..jobs.models import ProgressReporter
from ..models.entities import Volume
from ..telemetry.logger import RunLogger

_PhaseResult = TypeVar("_PhaseResult")


class PipelineTelemetryMixin:
    """Provide phase-telemetry and progress helper methods."""

    run_logger: RunLogger
    repository: VolumeRepository

    def _on_phase_start(self, phase: str, volume_id: int) -> None:
        self.run_logger.log_stage_start(phase, volume_id=volume_id)

    def _on_phase_complete(self, phase: str, volume_id: int) -> None:
        self.run_logger.log_stage_complete(phase, volume_id=volume_id)

    def _on_phase_failure(self, phase: str, volume_id: int, exc: Exception) -> None:
        """Emit a failure event with the exception type only."""

        self.run_logger.log_stage_failure(phase, type(exc).__name__, volume_id=volume_id)

    def _on_skip(self, phase: str, event: str, **context: object) -> None:
        self.run_logger.log_event("WARNING", event, phase, **context)

    def _run_phase(
        self,
        phase: str,
        volume_id: int,
        action: Callable[[], _PhaseResult],
    ) -> _PhaseResult:
        """Run one named phase and emit start/complete/failure telemetry events."""

        self._on_phase_start(phase, volume_id)
        try:
            result = action()
        except Exception as exc:
            self._on_phase_failure(phase, volume_id, exc)
            raise
        self._on_phase_complete(phase, volume_id)
        return result

    def _advance(
        self,
        volume: Volume,
        progress: int,
        report_progress: ProgressReporter,
    ) -> None:
        """Persist `progress` on the volume and forward it to the job reporter."""

        volume.progress = progress
        self.repository.save_volume(volume)
        report_progress(progress)

"""Explicit units of work that run pipeline entry points on a dispatcher worker."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from .models import JobResult, ProgressReporter

if TYPE_CHECKING:
    from ..pipeline.orchestrator import VolumeEnhancementPipeline


class JobMode(str, Enum):
    PROCESS = "process"
    SCENES = "scenes"
    IMAGES = "images"


_JOB_ID_PREFIXES = {
    JobMode.PROCESS: "parse-vol",
    JobMode.SCENES: "scenes-vol",
    JobMode.IMAGES: "images-vol",
}


def job_id_for(volume_id: int, mode: JobMode = JobMode.PROCESS) -> str:
    """Return the externally visible job id, e.g. `parse-vol-7`."""

    return f"{_JOB_ID_PREFIXES[mode]}-{volume_id}"


class VolumeProcessingJob:
    """Run one pipeline entry point for one volume."""

    def __init__(
        self,
        pipeline: VolumeEnhancementPipeline,
        volume_id: int,
        mode: JobMode = JobMode.PROCESS,
    ) -> None:
        self.pipeline = pipeline
        self.volume_id = volume_id
        self.mode = mode

    @property
    def job_id(self) -> str:
        return job_id_for(self.volume_id, self.mode)

    def execute(self, report_progress: ProgressReporter) -> JobResult:
        if self.mode is JobMode.SCENES:
            return self.pipeline.regenerate_scenes(self.volume_id, report_progress)
        if self.mode is JobMode.IMAGES:
            return self.pipeline.regenerate_images(self.volume_id, report_progress)
        return self.pipeline.process_volume(self.volume_id, report_progress)

"""Volume enhancement orchestration for Bookscene.

Responsibilities:
- Drive one volume through parsing, scene generation, image generation,
  and finalization while keeping the persisted record and progress in sync.
- Translate phase failures into an `error` volume and a failed `JobResult`.
- Offer re-entry points that rerun only the scene or image phase.

Key types:
- `VolumeEnhancementPipeline`: orchestration facade.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
import time

from ..config import BooksceneConfig
from ..errors import (
    InvalidTransitionError,
    PipelineStageError,
    StructureParseError,
    ValidationError,
    VolumeNotFoundError,
)
from ..images import ImageService
from ..io.repository import VolumeRepository
from ..io.structure_extractor import StructureExtractor
from ..jobs.models import PROGRESS_COMPLETE, PROGRESS_FAILED, JobResult, ProgressReporter
from ..llm.prompts import PromptLibrary
from ..llm.service import LLMService
from ..models.datatypes import ParsedVolume
from ..models.entities import Book, Volume
from ..models.status import BookStatus, ChapterStatus, SectionStatus, VolumeStatus
from ..telemetry.logger import RunLogger
from .images import ImageGenerationMixin
from .report import VolumeReport
from .retry import RetryPolicy
from .scenes import SceneGenerationMixin
from .structure import StructurePhaseMixin
from .telemetry import PipelineTelemetryMixin


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ignore_progress(_: int) -> None:
    return None


class VolumeEnhancementPipeline(
    PipelineTelemetryMixin,
    StructurePhaseMixin,
    SceneGenerationMixin,
    ImageGenerationMixin,
):
    """Coordinate all phases for one volume."""

    def __init__(
        self,
        repository: VolumeRepository,
        llm: LLMService,
        image_service: ImageService,
        extractor: StructureExtractor | None = None,
        config: BooksceneConfig | None = None,
        run_logger: RunLogger | None = None,
        sleeper: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
        prompts: PromptLibrary | None = None,
    ) -> None:
        """Wire collaborators; every external effect is injected."""

        self.repository = repository
        self.llm = llm
        self.image_service = image_service
        self.config = config or BooksceneConfig()
        self.run_logger = run_logger or RunLogger()
        self.extractor = extractor or StructureExtractor(
            section_word_limit=self.config.section_word_limit,
            run_logger=self.run_logger,
        )
        self.sleeper = sleeper
        self.clock = clock
        self.prompts = prompts or PromptLibrary()
        self.retry_policy = RetryPolicy(
            max_retries=self.config.max_retries,
            retry_delay_seconds=self.config.retry_delay_seconds,
            rate_limit_cooldown_seconds=self.config.rate_limit_cooldown_seconds,
        )

    def process_volume(
        self,
        volume_id: int,
        report_progress: ProgressReporter | None = None,
    ) -> JobResult:
        """Parse and enhance one uploaded volume end to end."""

        report = report_progress or _ignore_progress
        try:
            volume = self.repository.get_volume(volume_id)
            book = self.repository.get_book(volume.book_id)
        except VolumeNotFoundError as exc:
            self.run_logger.log_event("ERROR", "volume_missing", "process", volume_id=volume_id)
            return JobResult.failed(str(exc))

        try:
            volume.transition_to(VolumeStatus.PARSING)
        except InvalidTransitionError as exc:
            self.run_logger.log_event(
                "WARNING",
                "transition_rejected",
                "process",
                volume_id=volume_id,
                status=volume.status,
            )
            return JobResult.failed(str(exc))

        return self._guarded(
            volume, book, report, lambda: self._parse_and_enhance(volume, book, report)
        )

    def _parse_and_enhance(
        self, volume: Volume, book: Book, report: ProgressReporter
    ) -> JobResult:
        self._set_book_status(book, BookStatus.PROCESSING)
        self._advance(volume, 5, report)

        try:
            parsed = self._run_phase(
                "parse",
                volume.id,
                lambda: self.extractor.extract(Path(volume.file_path), volume.file_format),
            )
        except (StructureParseError, ValidationError, OSError) as exc:
            return self._fail_volume(volume, book, f"Parsing failed: {exc}", report)
        self._advance(volume, 20, report)

        parsed = self._infer_missing_metadata(parsed, volume.id)
        self._advance(volume, 25, report)

        self._apply_parse_result(volume, book, parsed)
        self._advance(volume, 30, report)

        volume.transition_to(VolumeStatus.ENHANCING)
        try:
            self._run_phase(
                "scenes",
                volume.id,
                lambda: self._generate_scenes_for_volume(volume, report),
            )
        except PipelineStageError as exc:
            return self._fail_volume(volume, book, exc.detail, report)
        self._advance(volume, 60, report)

        missing_images = self._run_phase(
            "images",
            volume.id,
            lambda: self._generate_images_for_volume(volume, report),
        )
        self._advance(volume, 95, report)

        return self._finalize(volume, book, report, missing_images)

    def regenerate_scenes(
        self,
        volume_id: int,
        report_progress: ProgressReporter | None = None,
    ) -> JobResult:
        """Clear scenes and rerun only the scene phase for a parsed volume."""

        report = report_progress or _ignore_progress
        loaded = self._load_for_reentry(volume_id, "regenerate-scenes")
        if isinstance(loaded, JobResult):
            return loaded
        volume, book = loaded
        return self._guarded(volume, book, report, lambda: self._rerun_scenes(volume, book, report))

    def _rerun_scenes(self, volume: Volume, book: Book, report: ProgressReporter) -> JobResult:
        for chapter in volume.chapters:
            chapter.status = ChapterStatus.PARSED.value
            for section in chapter.sections:
                section.scene = None
                section.status = SectionStatus.PARSED.value
        self._set_book_status(book, BookStatus.PROCESSING)
        self._advance(volume, 30, report)

        try:
            self._run_phase(
                "scenes",
                volume.id,
                lambda: self._generate_scenes_for_volume(volume, report),
            )
        except PipelineStageError as exc:
            return self._fail_volume(volume, book, exc.detail, report)
        return self._finalize(volume, book, report, None)

    def regenerate_images(
        self,
        volume_id: int,
        report_progress: ProgressReporter | None = None,
    ) -> JobResult:
        """Clear image references and rerun only the image phase."""

        report = report_progress or _ignore_progress
        loaded = self._load_for_reentry(volume_id, "regenerate-images")
        if isinstance(loaded, JobResult):
            return loaded
        volume, book = loaded
        return self._guarded(volume, book, report, lambda: self._rerun_images(volume, book, report))

    def _rerun_images(self, volume: Volume, book: Book, report: ProgressReporter) -> JobResult:
        for scene in volume.scenes():
            scene.image_ref = None
        self._set_book_status(book, BookStatus.PROCESSING)
        self._advance(volume, 60, report)

        missing_images = self._run_phase(
            "images",
            volume.id,
            lambda: self._generate_images_for_volume(volume, report),
        )
        self._advance(volume, 95, report)
        return self._finalize(volume, book, report, missing_images)

    def describe_volume(self, volume_id: int) -> VolumeReport:
        """Return a status/completeness snapshot of one volume."""

        return VolumeReport.from_volume(self.repository.get_volume(volume_id))

    def _apply_parse_result(self, volume: Volume, book: Book, parsed: ParsedVolume) -> None:
        self._store_structure(volume, parsed)
        volume.transition_to(VolumeStatus.PARSED)
        if self._propagate_metadata(volume, book, parsed):
            self.repository.save_book(book)
        self.repository.save_volume(volume)

    def _load_for_reentry(self, volume_id: int, command: str) -> tuple[Volume, Book] | JobResult:
        try:
            volume = self.repository.get_volume(volume_id)
            book = self.repository.get_book(volume.book_id)
        except VolumeNotFoundError as exc:
            self.run_logger.log_event("ERROR", "volume_missing", command, volume_id=volume_id)
            return JobResult.failed(str(exc))
        try:
            volume.transition_to(VolumeStatus.ENHANCING)
        except InvalidTransitionError as exc:
            self.run_logger.log_event(
                "WARNING",
                "transition_rejected",
                command,
                volume_id=volume_id,
                status=volume.status,
            )
            return JobResult.failed(str(exc))
        return volume, book

    def _finalize(
        self,
        volume: Volume,
        book: Book,
        report: ProgressReporter,
        missing_images: int | None,
    ) -> JobResult:
        volume.mark_completed(self.clock())
        self.repository.save_volume(volume)
        self._set_book_status(book, BookStatus.COMPLETED)
        report(PROGRESS_COMPLETE)

        summary = VolumeReport.from_volume(volume)
        message = (
            f"Volume {volume.id} completed: {summary.chapter_count} chapters, "
            f"{summary.scene_count} scenes"
        )
        if missing_images:
            message += f", {missing_images} without images"
        return JobResult.succeeded(message + ".")

    def _guarded(
        self,
        volume: Volume,
        book: Book,
        report: ProgressReporter,
        body: Callable[[], JobResult],
    ) -> JobResult:
        """Run `body`; an exception escaping it moves the volume to `error`.

        Re-raises when the volume already left every state that may enter
        `error` (it completed before the failure).
        """

        try:
            return body()
        except Exception as exc:
            if not VolumeStatus(volume.status).can_transition_to(VolumeStatus.ERROR):
                raise
            self.run_logger.log_event(
                "ERROR",
                "unexpected_failure",
                "process",
                volume_id=volume.id,
                error_type=type(exc).__name__,
            )
            return self._fail_volume(
                volume, book, f"Processing failed: {type(exc).__name__}: {exc}", report
            )

    def _fail_volume(
        self,
        volume: Volume,
        book: Book,
        message: str,
        report: ProgressReporter,
    ) -> JobResult:
        """Mark the volume and book `error`, persist, and report `-1`."""

        volume.transition_to(VolumeStatus.ERROR)
        volume.parse_errors = [message]
        volume.progress = PROGRESS_FAILED
        self.repository.save_volume(volume)
        self._set_book_status(book, BookStatus.ERROR)
        self.run_logger.log_event(
            "ERROR", "volume_failed", "process", volume_id=volume.id, detail=message
        )
        report(PROGRESS_FAILED)
        return JobResult.failed(message)

    def _set_book_status(self, book: Book, status: BookStatus) -> None:
        book.status = status.value
        self.repository.save_book(book)

"""Scene generation phase.

Responsibilities:
- Request scenes chapter by chapter with bounded retries.
- Attach at most one scene to each matched section.
- Skip chapters whose retries run out instead of failing the volume.
"""

from __future__ import annotations

from collections.abc import Callable

from ..config import BooksceneConfig
from ..errors import PipelineStageError, ProviderError, QuotaExceededError
from ..jobs.models import ProgressReporter
from ..llm.prompts import SCENE_SCHEMA, PromptLibrary
from ..llm.service import LLMService, parse_scene_response
from ..models.datatypes import GeneratedScene
from ..models.entities import Chapter, Scene, Volume
from ..models.status import ChapterStatus, SectionStatus
from .retry import RetryPolicy

SCENE_PROGRESS_START = 30
SCENE_PROGRESS_SPAN = 30


class SceneGenerationMixin:
    """Provide chapter-level scene generation for the pipeline."""

    config: BooksceneConfig
    llm: LLMService
    prompts: PromptLibrary
    retry_policy: RetryPolicy
    sleeper: Callable[[float], None]

    def _generate_scenes_for_volume(
        self, volume: Volume, report_progress: ProgressReporter
    ) -> None:
        """Generate scenes for every chapter in ascending order.

        Raises:
            PipelineStageError: The volume has no chapters.
        """

        chapters = sorted(volume.chapters, key=lambda chapter: chapter.number)
        if not chapters:
            raise PipelineStageError(
                stage="scenes",
                detail=f"No chapters found for volume {volume.id}.",
                hint="Reprocess the volume so its structure is parsed first.",
            )

        total_sections = sum(len(chapter.sections) for chapter in chapters)
        processed_sections = 0
        for chapter in chapters:
            if not chapter.sections:
                continue

            chapter.status = ChapterStatus.ENHANCING.value
            try:
                scenes = self.generate_scenes_for_chapter_with_retry(chapter)
            except Exception as exc:
                chapter.status = ChapterStatus.ERROR.value
                self._on_skip(
                    "scenes",
                    "chapter_skipped",
                    volume_id=volume.id,
                    chapter=chapter.number,
                    failure_kind=getattr(exc, "failure_kind", "unknown"),
                    error_type=type(exc).__name__,
                )
            else:
                self._attach_scenes(volume, chapter, scenes)
                chapter.status = ChapterStatus.COMPLETED.value

            processed_sections += len(chapter.sections)
            self._advance(
                volume,
                SCENE_PROGRESS_START
                + processed_sections * SCENE_PROGRESS_SPAN // total_sections,
                report_progress,
            )

    def generate_scenes_for_chapter_with_retry(
        self, chapter: Chapter
    ) -> tuple[GeneratedScene, ...]:
        """Generate scenes for one chapter within the retry budget.

        Attempt `n` is followed by `retry_delay * 2**(n-1)` seconds of backoff,
        or the rate-limit cooldown when the provider signaled a rate limit.

        Raises:
            ProviderError: Every attempt failed, or the daily quota is spent.
        """

        attempts = self.retry_policy.max_retries
        last_error: ProviderError | None = None
        for attempt in range(1, attempts + 1):
            try:
                return self._generate_scenes_for_chapter(chapter)
            except QuotaExceededError:
                raise
            except ProviderError as exc:
                last_error = exc
                self._on_skip(
                    "scenes",
                    "chapter_attempt_failed",
                    chapter=chapter.number,
                    attempt=attempt,
                    failure_kind=exc.failure_kind,
                )
                if attempt < attempts:
                    self.sleeper(self.retry_policy.scene_delay(attempt, exc))

        if last_error is None:
            raise ProviderError(
                "Scene generation was not attempted: `max_retries` must be at least 1.",
                failure_kind="unknown",
            )
        raise ProviderError(
            f"Scene generation failed after {attempts} attempts: {last_error}",
            failure_kind=last_error.failure_kind,
            status_code=last_error.status_code,
        ) from last_error

    def _generate_scenes_for_chapter(self, chapter: Chapter) -> tuple[GeneratedScene, ...]:
        context = self.prompts.chapter_context(
            chapter.number,
            chapter.title,
            (
                (section.number, section.clean_text)
                for section in sorted(chapter.sections, key=lambda item: item.number)
            ),
        )
        raw = self.llm.generate_json(
            self.prompts.scene_system_prompt(),
            self.prompts.scene_prompt(context),
            SCENE_SCHEMA,
            timeout=self.config.scene_timeout_seconds,
        )
        return parse_scene_response(raw)

    def _attach_scenes(
        self,
        volume: Volume,
        chapter: Chapter,
        scenes: tuple[GeneratedScene, ...],
    ) -> None:
        """Attach each scene to its section; unmatched and duplicate numbers are logged."""

        sections = {section.number: section for section in chapter.sections}
        for generated in scenes:
            section = sections.get(generated.section_number)
            if section is None:
                self._on_skip(
                    "scenes",
                    "section_not_found",
                    volume_id=volume.id,
                    chapter=chapter.number,
                    section=generated.section_number,
                )
                continue
            if section.status == SectionStatus.COMPLETED.value and section.scene is not None:
                self._on_skip(
                    "scenes",
                    "duplicate_scene",
                    volume_id=volume.id,
                    chapter=chapter.number,
                    section=generated.section_number,
                )
                continue

            section.scene = Scene(
                summary=generated.summary,
                image_prompt=generated.image_prompt,
                importance_score=generated.importance_score,
                scene_type=generated.scene_type,
                characters=list(generated.characters),
                location=generated.location,
                mood=generated.mood,
            )
            section.status = SectionStatus.COMPLETED.value

"""Integration tests for the volume enhancement pipeline phases."""

from __future__ import annotations

from pathlib import Path
import zipfile

import pytest

from bookscene.config import BooksceneConfig
from bookscene.errors import ProviderError, QuotaExceededError
from bookscene.images import DummyImageService
from bookscene.io.repository import InMemoryVolumeRepository
from bookscene.models.datatypes import ParsedVolume
from bookscene.pipeline import VolumeEnhancementPipeline
from tests.fixture_builders import (
    FIXED_NOW,
    FailingImageService,
    RecordingRunLogger,
    RecordingSleeper,
    ScriptedLLM,
    build_epub_bytes,
    damage_member,
    scene_payload,
    xhtml,
)

_HEADINGS = ("Chapter 1: Arrival", "Chapter 2: The House", "Chapter 3: Morning")
_THREE_CHAPTERS = (
    f"{_HEADINGS[0]}\nThe train pulled in at dusk.\n\nShe stepped onto the platform.\n\n"
    f"{_HEADINGS[1]}\nThe house was dark!\n\n***\n\nA lamp burned upstairs.\n\n"
    f'{_HEADINGS[2]}\n"Good morning," he said.\n'
)
_TWO_CHAPTERS = "Chapter 1\nAlpha beta.\n\nChapter 2\nGamma delta.\n"


def _body_token_count() -> int:
    heading_tokens = sum(len(heading.split()) for heading in _HEADINGS)
    return len(_THREE_CHAPTERS.split()) - heading_tokens - 1


def _rate_limited() -> ProviderError:
    return ProviderError("rate limited", failure_kind="rate_limited", status_code=429)


def _event_context(run_logger: RecordingRunLogger, name: str) -> dict[str, object]:
    return next(context for _, event, _, context in run_logger.events if event == name)


class _ExplodingExtractor:
    def extract(self, file_path: Path, file_format: str) -> ParsedVolume:
        _ = (file_path, file_format)
        raise KeyError("spine")


class _CrashingImageService:
    """Image backend whose client fails outside the provider error hierarchy."""

    def __init__(self) -> None:
        self.calls = 0

    def generate_image(self, prompt: str) -> str:
        _ = prompt
        self.calls += 1
        raise RuntimeError("renderer crashed")


def test_three_chapter_text_volume_completes(make_pipeline, upload, repository) -> None:  # type: ignore[no-untyped-def]
    """A plain-text volume reaches `completed` with exact counts and ordered progress."""

    volume = upload("three.txt", _THREE_CHAPTERS.encode("utf-8"))
    reported: list[int] = []

    result = make_pipeline().process_volume(volume.id, reported.append)

    stored = repository.get_volume(volume.id)
    assert result.ok is True
    assert result.message == f"Volume {volume.id} completed: 3 chapters, 4 scenes."
    assert stored.status == "completed"
    assert stored.progress == 100
    assert stored.completed_at == FIXED_NOW.isoformat()
    assert stored.chapter_count == 3
    assert stored.section_count == 4
    assert stored.word_count == _body_token_count()
    assert [chapter.title for chapter in stored.chapters] == ["Arrival", "The House", "Morning"]
    assert {chapter.status for chapter in stored.chapters} == {"completed"}
    assert all(scene.has_image for scene in stored.scenes())
    assert reported == sorted(reported)
    assert reported[-1] == 100
    assert {5, 20, 25, 30, 60, 95} <= set(reported)
    assert repository.get_book(volume.book_id).status == "completed"


def test_epub_volume_uses_opf_title_and_infers_missing_author(
    make_pipeline, upload, repository
) -> None:  # type: ignore[no-untyped-def]
    """OPF metadata wins; the LLM only fills the missing author."""

    body = "Call me Ishmael. Some years ago I went to sea."
    epub = build_epub_bytes([("ch1.xhtml", xhtml("CHAPTER 1: Loomings", body))], title="Moby Dick")
    volume = upload("moby.epub", epub)
    llm = ScriptedLLM(metadata=['{"title": "Guess", "author": "Herman Melville"}'])

    make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    book = repository.get_book(volume.book_id)
    chapter = stored.chapters[0]
    assert (chapter.title, chapter.detection_method, chapter.detection_confidence) == (
        "Loomings",
        "regex_pattern",
        0.8,
    )
    assert len(chapter.sections) == 1
    assert chapter.word_count == len(body.split())
    assert stored.parse_method == "epub_metadata"
    assert stored.title == "Moby Dick"
    assert (book.title, book.author) == ("Moby Dick", "Herman Melville")
    assert len(llm.calls_of("metadata")) == 1


def test_metadata_inference_fills_placeholders_only(make_pipeline, upload, repository) -> None:  # type: ignore[no-untyped-def]
    """Inferred metadata replaces placeholder book fields but not user-given ones."""

    volume = upload("draft.txt", _TWO_CHAPTERS.encode("utf-8"), book_title="My Working Title")
    llm = ScriptedLLM(
        metadata=['{"title": "The Quiet House", "author": "J. Doe", "description": "A house."}']
    )

    make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    book = repository.get_book(volume.book_id)
    assert stored.parse_method == "llm_inference"
    assert stored.title == "The Quiet House"
    assert book.title == "My Working Title"
    assert book.author == "J. Doe"
    assert book.description == "A house."
    assert llm.calls_of("metadata")[0]["timeout"] == 30.0


def test_metadata_inference_failure_is_recorded_not_fatal(make_pipeline, upload, repository) -> None:  # type: ignore[no-untyped-def]
    """A failing metadata call adds a parse error and the volume still completes."""

    volume = upload("notes.txt", _TWO_CHAPTERS.encode("utf-8"))
    llm = ScriptedLLM(metadata=[ProviderError("llm down", failure_kind="unavailable")])

    result = make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert result.ok is True
    assert stored.parse_errors == ["LLM enhancement failed: llm down"]
    assert stored.parse_method == "text_pattern"
    assert stored.title == "notes.txt"


def test_structural_parse_failure_marks_volume_error(
    make_pipeline, upload, repository, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """A corrupt archive aborts the volume with -1 and no enhancement calls."""

    volume = upload("broken.epub", b"not a zip archive")
    llm = ScriptedLLM()
    reported: list[int] = []

    result = make_pipeline(llm=llm).process_volume(volume.id, reported.append)

    stored = repository.get_volume(volume.id)
    assert result.ok is False
    assert stored.status == "error"
    assert stored.progress == -1
    assert stored.parse_errors[0].startswith("Parsing failed: EPUB archive is corrupt")
    assert repository.get_book(volume.book_id).status == "error"
    assert reported[-1] == -1
    assert llm.calls == []
    assert "volume_failed" in run_logger.names("process")


def test_epub_without_package_document_is_not_a_silent_success(
    make_pipeline, upload, repository
) -> None:  # type: ignore[no-untyped-def]
    """Missing OPF yields an `error` volume, never an empty completed one."""

    volume = upload("no-opf.epub", build_epub_bytes([("a.xhtml", xhtml("x"))], include_opf=False))

    result = make_pipeline().process_volume(volume.id)

    assert result.ok is False
    assert repository.get_volume(volume.id).status == "error"
    assert repository.get_volume(volume.id).chapters == []


def test_damaged_archive_member_fails_volume_and_allows_retry(
    make_pipeline, upload, repository
) -> None:  # type: ignore[no-untyped-def]
    """A broken deflate stream ends in `error` with -1, never stranded in `parsing`."""

    body = " ".join(["The lamp swung over the chart table."] * 40)
    epub = build_epub_bytes(
        [("ch1.xhtml", xhtml("Chapter 1", body))],
        title="Charts",
        compression=zipfile.ZIP_DEFLATED,
    )
    volume = upload("damaged.epub", damage_member(epub, "OEBPS/ch1.xhtml"))
    pipeline = make_pipeline()
    reported: list[int] = []

    first = pipeline.process_volume(volume.id, reported.append)
    stored = repository.get_volume(volume.id)
    second = pipeline.process_volume(volume.id)

    assert first.ok is False
    assert stored.status == "error"
    assert stored.progress == -1
    assert stored.parse_errors[0].startswith("Parsing failed: EPUB archive is corrupt")
    assert reported[-1] == -1
    assert second.ok is False
    assert "transition" not in second.message
    assert repository.get_volume(volume.id).status == "error"


def test_unexpected_extractor_exception_marks_volume_error(
    make_pipeline, upload, repository, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """Exceptions outside the expected parse errors still fail the volume cleanly."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    reported: list[int] = []

    result = make_pipeline(extractor=_ExplodingExtractor()).process_volume(
        volume.id, reported.append
    )

    stored = repository.get_volume(volume.id)
    assert result.ok is False
    assert stored.status == "error"
    assert stored.progress == -1
    assert stored.parse_errors[0].startswith("Processing failed: KeyError")
    assert repository.get_book(volume.book_id).status == "error"
    assert reported[-1] == -1
    assert "unexpected_failure" in run_logger.names("process")


def test_unknown_volume_and_rejected_transition_fail_without_changes(
    make_pipeline, upload, repository: InMemoryVolumeRepository, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """Missing ids fail; a volume already parsing cannot start parsing again."""

    volume = upload("busy.txt", _TWO_CHAPTERS.encode("utf-8"))
    stored = repository.get_volume(volume.id)
    stored.status = "parsing"
    repository.save_volume(stored)
    pipeline = make_pipeline()

    missing = pipeline.process_volume(999)
    rejected = pipeline.process_volume(volume.id)

    assert missing.ok is False
    assert "999" in missing.message
    assert rejected.ok is False
    assert "`parsing` to `parsing`" in rejected.message
    assert repository.get_volume(volume.id).status == "parsing"
    assert "transition_rejected" in run_logger.names("process")


def test_rate_limited_chapter_is_skipped_after_cooldowns(
    make_pipeline, upload, repository, sleeper: RecordingSleeper, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """Exhausted chapters are marked `error` while later chapters still get scenes."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    llm = ScriptedLLM(scenes=[_rate_limited() for _ in range(3)])

    result = make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    report = make_pipeline().describe_volume(volume.id)
    assert result.ok is True
    assert stored.status == "completed"
    assert [chapter.status for chapter in stored.chapters] == ["error", "completed"]
    assert stored.chapters[0].sections[0].scene is None
    assert report.failed_chapters == (1,)
    assert report.scene_count == 1
    assert len(llm.calls_of("scenes")) == 4
    assert sleeper.delays == [60.0, 60.0]
    assert "chapter_skipped" in run_logger.names("scenes")


def test_non_provider_scene_failure_skips_only_that_chapter(
    make_pipeline, upload, repository, sleeper: RecordingSleeper, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """A crash inside one chapter's scene call is logged and later chapters continue."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    llm = ScriptedLLM(scenes=[RuntimeError("decoder crashed")])

    result = make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert result.ok is True
    assert stored.status == "completed"
    assert stored.progress == 100
    assert [chapter.status for chapter in stored.chapters] == ["error", "completed"]
    assert sleeper.delays == []
    assert _event_context(run_logger, "chapter_skipped") == {
        "volume_id": volume.id,
        "chapter": 1,
        "failure_kind": "unknown",
        "error_type": "RuntimeError",
    }


def test_transient_scene_failure_recovers_with_backoff(
    make_pipeline, upload, repository, sleeper: RecordingSleeper
) -> None:  # type: ignore[no-untyped-def]
    """One unavailable response is retried after the base delay."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    llm = ScriptedLLM(scenes=[ProviderError("busy", failure_kind="unavailable")])

    make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert [chapter.status for chapter in stored.chapters] == ["completed", "completed"]
    assert sleeper.delays == [1.0]
    assert llm.calls_of("scenes")[0]["timeout"] == 60.0


def test_quota_exhaustion_skips_chapter_without_retrying(
    make_pipeline, upload, repository, sleeper: RecordingSleeper
) -> None:  # type: ignore[no-untyped-def]
    """A spent daily quota is not retried within the chapter."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    llm = ScriptedLLM(scenes=[QuotaExceededError("Daily request quota exceeded (1/1).")])

    make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert [chapter.status for chapter in stored.chapters] == ["error", "completed"]
    assert len(llm.calls_of("scenes")) == 2
    assert sleeper.delays == []


def test_unmatched_and_duplicate_scenes_are_logged_and_ignored(
    make_pipeline, upload, repository, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """Only the first scene for an existing section is attached."""

    volume = upload("one.txt", b"Just one short section.")
    llm = ScriptedLLM(scenes=[scene_payload(1, 1, 7)])

    make_pipeline(llm=llm).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert len(stored.scenes()) == 1
    assert stored.chapters[0].sections[0].status == "completed"
    assert run_logger.names("scenes").count("section_not_found") == 1
    assert "duplicate_scene" in run_logger.names("scenes")


def test_always_failing_image_provider_leaves_scenes_without_images(
    make_pipeline, upload, repository, sleeper: RecordingSleeper
) -> None:  # type: ignore[no-untyped-def]
    """Each scene gets exactly `max_retries` image attempts and the volume completes."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    images = FailingImageService()

    result = make_pipeline(image_service=images).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert result.ok is True
    assert result.message.endswith("2 scenes, 2 without images.")
    assert stored.status == "completed"
    assert stored.progress == 100
    assert len(images.prompts) == 6
    assert [scene.image_ref for scene in stored.scenes()] == [None, None]
    assert sleeper.delays == [1.0, 2.0, 1.0, 2.0]


def test_image_failure_does_not_block_later_scenes(make_pipeline, upload, repository) -> None:  # type: ignore[no-untyped-def]
    """A scene that exhausts retries is skipped and the next scene still gets an image."""

    volume = upload("breaks.txt", b"Alpha beta.\n\n***\n\nGamma delta.\n")
    images = FailingImageService("section 1")

    make_pipeline(image_service=images).process_volume(volume.id)

    scenes = repository.get_volume(volume.id).scenes()
    assert [scene.image_ref for scene in scenes] == [None, "ref://4"]


def test_crashing_image_service_leaves_scenes_without_images(
    make_pipeline, upload, repository, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """Non-provider image errors skip the scene image and the volume still completes."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    images = _CrashingImageService()

    result = make_pipeline(image_service=images).process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert result.ok is True
    assert stored.status == "completed"
    assert stored.progress == 100
    assert [scene.image_ref for scene in stored.scenes()] == [None, None]
    assert images.calls == 2
    skipped = [context for _, event, _, context in run_logger.events if event == "image_skipped"]
    assert [context["error_type"] for context in skipped] == ["RuntimeError", "RuntimeError"]
    assert {context["failure_kind"] for context in skipped} == {"unknown"}


def test_zero_attempt_budget_skips_chapters_with_provider_error(
    repository, upload, sleeper: RecordingSleeper, run_logger: RecordingRunLogger
) -> None:  # type: ignore[no-untyped-def]
    """An unvalidated `max_retries=0` skips chapters instead of crashing the run."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    llm = ScriptedLLM()
    pipeline = VolumeEnhancementPipeline(
        repository=repository,
        llm=llm,
        image_service=DummyImageService(),
        config=BooksceneConfig(max_retries=0),
        run_logger=run_logger,
        sleeper=sleeper,
    )

    result = pipeline.process_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert result.ok is True
    assert [chapter.status for chapter in stored.chapters] == ["error", "error"]
    assert llm.calls_of("scenes") == []
    assert _event_context(run_logger, "chapter_skipped")["error_type"] == "ProviderError"
    with pytest.raises(ProviderError, match="must be at least 1"):
        pipeline.generate_scenes_for_chapter_with_retry(stored.chapters[0])


def test_generate_image_with_retry_attempts_exact_budget(
    make_pipeline, sleeper: RecordingSleeper
) -> None:  # type: ignore[no-untyped-def]
    """The configured attempt count is used, then the last error propagates."""

    images = FailingImageService(failure_kind="unexpected_content_type")
    pipeline = make_pipeline(image_service=images)

    with pytest.raises(ProviderError) as error:
        pipeline.generate_image_with_retry("lighthouse")

    assert error.value.failure_kind == "unexpected_content_type"
    assert images.prompts == ["lighthouse"] * 3
    assert sleeper.delays == [1.0, 2.0]


def test_regenerate_scenes_then_images(make_pipeline, upload, repository) -> None:  # type: ignore[no-untyped-def]
    """Scene regeneration replaces scenes; image regeneration fills their images."""

    volume = upload("two.txt", _TWO_CHAPTERS.encode("utf-8"))
    make_pipeline().process_volume(volume.id)
    llm = ScriptedLLM(
        scenes=[scene_payload(1, prompt_prefix="Sketch of"), scene_payload(1, prompt_prefix="Sketch of")]
    )
    pipeline = make_pipeline(llm=llm)

    scenes_result = pipeline.regenerate_scenes(volume.id)
    after_scenes = pipeline.describe_volume(volume.id)
    images_result = pipeline.regenerate_images(volume.id)
    after_images = pipeline.describe_volume(volume.id)

    stored = repository.get_volume(volume.id)
    assert scenes_result.ok and images_result.ok
    assert llm.calls_of("metadata") == []
    assert [scene.image_prompt for scene in stored.scenes()] == [
        "Sketch of section 1",
        "Sketch of section 1",
    ]
    assert (after_scenes.status, after_scenes.scenes_without_images) == ("completed", 2)
    assert (after_images.status, after_images.scenes_without_images) == ("completed", 0)


def test_regeneration_requires_a_parsed_volume(make_pipeline, upload, repository) -> None:  # type: ignore[no-untyped-def]
    """Uploaded volumes are rejected; failed volumes without chapters fail again."""

    uploaded = upload("fresh.txt", _TWO_CHAPTERS.encode("utf-8"))
    broken = upload("broken.epub", b"garbage")
    pipeline = make_pipeline()
    pipeline.process_volume(broken.id)

    rejected = pipeline.regenerate_scenes(uploaded.id)
    no_chapters = pipeline.regenerate_scenes(broken.id)

    assert rejected.ok is False
    assert repository.get_volume(uploaded.id).status == "uploaded"
    assert no_chapters.ok is False
    assert no_chapters.message == f"No chapters found for volume {broken.id}."
    assert repository.get_volume(broken.id).status == "error"

"""Read-only summary of one volume for status polling and CLI output."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.entities import Volume
from ..models.status import ChapterStatus


@dataclass(frozen=True, slots=True)
class VolumeReport:
    """Snapshot of a volume's status, counts, and scene/image completeness.

    A `completed` volume may still report `scenes_without_images > 0`: image
    failures never fail the volume, so callers check both fields.
    """

    volume_id: int
    book_id: int
    title: str
    status: str
    progress: int
    parse_method: str
    chapter_count: int
    section_count: int
    word_count: int
    scene_count: int
    scenes_with_images: int
    failed_chapters: tuple[int, ...] = ()
    parse_errors: tuple[str, ...] = ()
    completed_at: str | None = None

    @property
    def scenes_without_images(self) -> int:
        return self.scene_count - self.scenes_with_images

    @classmethod
    def from_volume(cls, volume: Volume) -> VolumeReport:
        scenes = volume.scenes()
        return cls(
            volume_id=volume.id,
            book_id=volume.book_id,
            title=volume.title,
            status=volume.status,
            progress=volume.progress,
            parse_method=volume.parse_method,
            chapter_count=volume.chapter_count,
            section_count=volume.section_count,
            word_count=volume.word_count,
            scene_count=len(scenes),
            scenes_with_images=sum(1 for scene in scenes if scene.has_image),
            failed_chapters=tuple(
                chapter.number
                for chapter in volume.chapters
                if chapter.status == ChapterStatus.ERROR.value
            ),
            parse_errors=tuple(volume.parse_errors),
            completed_at=volume.completed_at,
        )

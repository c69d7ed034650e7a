"""Persisted domain entities: books, volumes, chapters, sections, and scenes.

Responsibilities:
- Hold the mutable state the enhancement pipeline writes after each phase.
- Enforce volume status transitions through `Volume.transition_to`.
- Convert to and from JSON-compatible payloads for repository storage.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from ..errors import InvalidTransitionError
from .status import BookStatus, ChapterStatus, SectionStatus, VolumeStatus

PLACEHOLDER_BOOK_TITLES = frozenset({"", "Untitled", "Untitled draft"})
PLACEHOLDER_BOOK_AUTHORS = frozenset({"", "Unknown"})
PLACEHOLDER_BOOK_DESCRIPTIONS = frozenset({"", "No description provided"})


@dataclass(slots=True)
class Scene:
    """AI-derived narrative unit attached to one section."""

    summary: str
    image_prompt: str
    importance_score: float
    scene_type: str
    characters: list[str] = field(default_factory=list)
    location: str = ""
    mood: str = ""
    image_ref: str | None = None
    status: str = SectionStatus.COMPLETED.value

    @property
    def has_image(self) -> bool:
        return bool(self.image_ref)


@dataclass(slots=True)
class Section:
    """Ordered text block within a chapter."""

    number: int
    raw_text: str
    clean_text: str
    word_count: int
    has_dialogue: bool = False
    has_action: bool = False
    status: str = SectionStatus.PARSED.value
    scene: Scene | None = None


@dataclass(slots=True)
class Chapter:
    """Ordered chapter within a volume."""

    number: int
    title: str
    detection_method: str
    detection_confidence: float
    word_count: int = 0
    status: str = ChapterStatus.PARSED.value
    sections: list[Section] = field(default_factory=list)


@dataclass(slots=True)
class Book:
    """Owning book record whose placeholder metadata may be filled by parsing."""

    id: int
    title: str = "Untitled"
    author: str = "Unknown"
    description: str = ""
    status: str = BookStatus.DRAFT.value

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Book:
        return cls(**payload)


@dataclass(slots=True)
class Volume:
    """One uploaded manuscript and its processing state.

    Attributes:
        id: Repository identifier.
        book_id: Owning book identifier.
        title: Volume title, initially inferred from the uploaded file name.
        file_path: Stored manuscript path.
        file_format: Declared format (`epub`, `txt`, `pdf`).
        status: Current `VolumeStatus` value.
        progress: Last persisted progress, `-1` after an unrecoverable failure.
        word_count: Sum of chapter word counts.
        chapter_count: Number of chapters.
        section_count: Number of sections across chapters.
        parse_method: `ParseMethod` value used for structure/metadata.
        parse_errors: Accumulated non-fatal and fatal parse messages.
        completed_at: ISO-8601 UTC completion timestamp.
        chapters: Ordered chapters.
    """

    id: int
    book_id: int
    title: str
    file_path: str
    file_format: str
    status: str = VolumeStatus.CREATED.value
    progress: int = 0
    word_count: int = 0
    chapter_count: int = 0
    section_count: int = 0
    parse_method: str = ""
    parse_errors: list[str] = field(default_factory=list)
    completed_at: str | None = None
    chapters: list[Chapter] = field(default_factory=list)

    def transition_to(self, target: VolumeStatus) -> None:
        """Move to `target` or raise `InvalidTransitionError` for disallowed edges."""

        current = VolumeStatus(self.status)
        if not current.can_transition_to(target):
            raise InvalidTransitionError(current.value, target.value)
        self.status = target.value

    def refresh_counts(self) -> None:
        """Recompute chapter/section/word totals bottom-up from sections."""

        section_count = 0
        word_count = 0
        for chapter in self.chapters:
            chapter.word_count = sum(section.word_count for section in chapter.sections)
            section_count += len(chapter.sections)
            word_count += chapter.word_count
        self.chapter_count = len(self.chapters)
        self.section_count = section_count
        self.word_count = word_count

    def iter_sections(self):
        """Yield `(chapter, section)` pairs in chapter/section order."""

        for chapter in sorted(self.chapters, key=lambda item: item.number):
            for section in sorted(chapter.sections, key=lambda item: item.number):
                yield chapter, section

    def scenes(self) -> list[Scene]:
        """Return attached scenes in chapter/section order."""

        return [section.scene for _, section in self.iter_sections() if section.scene is not None]

    def mark_completed(self, now: datetime) -> None:
        self.transition_to(VolumeStatus.COMPLETED)
        self.progress = 100
        self.completed_at = now.isoformat()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Volume:
        """Rebuild a volume tree from a `to_dict` payload."""

        data = dict(payload)
        chapters: list[Chapter] = []
        for raw_chapter in data.pop("chapters", []):
            chapter_data = dict(raw_chapter)
            sections: list[Section] = []
            for raw_section in chapter_data.pop("sections", []):
                section_data = dict(raw_section)
                raw_scene = section_data.pop("scene", None)
                scene = Scene(**raw_scene) if raw_scene is not None else None
                sections.append(Section(**section_data, scene=scene))
            chapters.append(Chapter(**chapter_data, sections=sections))
        return cls(**data, chapters=chapters)

"""Immutable records exchanged between extraction and enhancement stages.

Responsibilities:
- Represent the structural extractor output (`ParsedVolume` tree).
- Represent LLM responses after schema validation (`InferredMetadata`,
  `GeneratedScene`).

Key types:
- `ParsedSection`, `ParsedChapter`, `ParsedVolume`, `EpubMetadata`,
  `InferredMetadata`, and `GeneratedScene`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .status import ParseMethod


@dataclass(frozen=True, slots=True)
class ParsedSection:
    """A section detected inside a chapter.

    Attributes:
        number: 1-based section number, gapless within the chapter.
        raw_text: Text exactly as accumulated by segmentation.
        clean_text: Whitespace-trimmed text used for enhancement.
        word_count: Whitespace-delimited token count of `clean_text`.
        has_dialogue: Whether quote characters were found.
        has_action: Whether exclamation marks or action verbs were found.
    """

    number: int
    raw_text: str
    clean_text: str
    word_count: int
    has_dialogue: bool = False
    has_action: bool = False


@dataclass(frozen=True, slots=True)
class ParsedChapter:
    """A chapter detected in manuscript text.

    Attributes:
        number: 1-based chapter number, gapless within the volume.
        title: Detected chapter title.
        detection_method: Heuristic that produced the chapter boundary.
        detection_confidence: Heuristic confidence in `[0.0, 1.0]`.
        sections: Ordered sections.
    """

    number: int
    title: str
    detection_method: str
    detection_confidence: float
    sections: tuple[ParsedSection, ...] = ()

    @property
    def word_count(self) -> int:
        """Return the sum of section word counts."""

        return sum(section.word_count for section in self.sections)


@dataclass(frozen=True, slots=True)
class ParsedVolume:
    """Structural extraction result for one manuscript file."""

    parse_method: ParseMethod
    chapters: tuple[ParsedChapter, ...] = ()
    detected_title: str = ""
    detected_author: str = ""
    detected_description: str = ""
    errors: tuple[str, ...] = ()

    @property
    def word_count(self) -> int:
        """Return the sum of chapter word counts."""

        return sum(chapter.word_count for chapter in self.chapters)

    @property
    def section_count(self) -> int:
        return sum(len(chapter.sections) for chapter in self.chapters)


@dataclass(frozen=True, slots=True)
class EpubMetadata:
    """Package-document metadata read from an EPUB OPF file."""

    title: str = ""
    creator: str = ""
    description: str = ""
    language: str = ""


@dataclass(frozen=True, slots=True)
class InferredMetadata:
    """Book metadata inferred by the LLM from a text sample."""

    title: str = ""
    author: str = ""
    description: str = ""
    genre: str = ""


@dataclass(frozen=True, slots=True)
class GeneratedScene:
    """One scene returned by the scene-generation prompt.

    Attributes:
        section_number: Section the scene belongs to.
        summary: Short narrative summary.
        importance_score: Story importance clamped to `[0.0, 1.0]`.
        scene_type: Classification such as `action` or `dialogue`.
        image_prompt: Visual prompt for image generation.
        characters: Character names present in the scene.
        location: Where the scene takes place.
        mood: Emotional tone.
    """

    section_number: int
    summary: str
    importance_score: float
    scene_type: str
    image_prompt: str
    characters: tuple[str, ...] = field(default_factory=tuple)
    location: str = ""
    mood: str = ""

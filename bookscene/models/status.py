"""Status and classification enums for volumes, chapters, sections, and books.

`VolumeStatus` owns the allowed-edge table: every status change made by the
pipeline goes through `can_transition_to`.
"""

from __future__ import annotations

from enum import Enum


class BookStatus(str, Enum):
    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class VolumeStatus(str, Enum):
    """Lifecycle of one uploaded manuscript."""

    CREATED = "created"
    UPLOADED = "uploaded"
    PARSING = "parsing"
    PARSED = "parsed"
    ENHANCING = "enhancing"
    COMPLETED = "completed"
    ERROR = "error"

    def can_transition_to(self, target: VolumeStatus) -> bool:
        """Return whether `self -> target` is an allowed edge."""

        return target in _VOLUME_TRANSITIONS.get(self, frozenset())


_VOLUME_TRANSITIONS: dict[VolumeStatus, frozenset[VolumeStatus]] = {
    VolumeStatus.CREATED: frozenset({VolumeStatus.UPLOADED, VolumeStatus.ERROR}),
    VolumeStatus.UPLOADED: frozenset({VolumeStatus.PARSING, VolumeStatus.ERROR}),
    VolumeStatus.PARSING: frozenset({VolumeStatus.PARSED, VolumeStatus.ERROR}),
    VolumeStatus.PARSED: frozenset(
        {VolumeStatus.ENHANCING, VolumeStatus.COMPLETED, VolumeStatus.ERROR}
    ),
    VolumeStatus.ENHANCING: frozenset({VolumeStatus.COMPLETED, VolumeStatus.ERROR}),
    # Re-processing and retry entry points.
    VolumeStatus.COMPLETED: frozenset({VolumeStatus.PARSING, VolumeStatus.ENHANCING}),
    VolumeStatus.ERROR: frozenset({VolumeStatus.PARSING, VolumeStatus.ENHANCING}),
}


class ChapterStatus(str, Enum):
    PARSED = "parsed"
    ENHANCING = "enhancing"
    COMPLETED = "completed"
    ERROR = "error"


class SectionStatus(str, Enum):
    PARSED = "parsed"
    ENHANCING = "enhancing"
    COMPLETED = "completed"
    ERROR = "error"


class ParseMethod(str, Enum):
    """How the structure and metadata of a volume were obtained."""

    EPUB_METADATA = "epub_metadata"
    EPUB_CONTENT = "epub_content"
    PDF_LAYOUT = "pdf_layout"
    TEXT_PATTERN = "text_pattern"
    LLM_INFERENCE = "llm_inference"


class FileFormat(str, Enum):
    EPUB = "epub"
    TXT = "txt"
    PDF = "pdf"

"""Shared typed data models for Bookscene.

This package contains the immutable extraction records, the mutable
persisted entities, and the status enums shared across pipeline modules.
"""

from .datatypes import (
    EpubMetadata,
    GeneratedScene,
    InferredMetadata,
    ParsedChapter,
    ParsedSection,
    ParsedVolume,
)
from .entities import Book, Chapter, Scene, Section, Volume
from .status import (
    BookStatus,
    ChapterStatus,
    FileFormat,
    ParseMethod,
    SectionStatus,
    VolumeStatus,
)

__all__ = [
    "Book",
    "BookStatus",
    "Chapter",
    "ChapterStatus",
    "EpubMetadata",
    "FileFormat",
    "GeneratedScene",
    "InferredMetadata",
    "ParseMethod",
    "ParsedChapter",
    "ParsedSection",
    "ParsedVolume",
    "Scene",
    "Section",
    "SectionStatus",
    "Volume",
    "VolumeStatus",
]

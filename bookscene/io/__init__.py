"""Input/output stage components for Bookscene.

This package contains manuscript extraction, chapter segmentation, file
storage, and the book/volume repositories used by the pipeline.
"""

from .chapter_splitter import ChapterSplitter, detect_chapters_from_text
from .epub_extractor import EpubExtractor
from .pdf_text_extractor import PdfDocument, PdfTextExtractor
from .repository import InMemoryVolumeRepository, JsonVolumeRepository, VolumeRepository
from .storage import ArtifactStore, LocalStorage, StorageService
from .structure_extractor import StructureExtractor

__all__ = [
    "ArtifactStore",
    "ChapterSplitter",
    "EpubExtractor",
    "InMemoryVolumeRepository",
    "JsonVolumeRepository",
    "LocalStorage",
    "PdfDocument",
    "PdfTextExtractor",
    "StorageService",
    "StructureExtractor",
    "VolumeRepository",
    "detect_chapters_from_text",
]

"""Format dispatch for structural extraction.

Responsibilities:
- Validate the declared manuscript format and file existence.
- Route EPUB, plain-text, and PDF inputs to their text extractors.
- Segment extracted text into a deterministic `ParsedVolume` tree.
"""

from __future__ import annotations

from pathlib import Path

from ..errors import MissingFileError, UnsupportedFormatError
from ..models.datatypes import ParsedVolume
from ..models.status import FileFormat, ParseMethod
from ..telemetry.logger import RunLogger
from ..text.sections import DEFAULT_SECTION_WORD_LIMIT
from .chapter_splitter import ChapterSplitter
from .epub_extractor import EpubExtractor
from .pdf_text_extractor import PdfTextExtractor


class StructureExtractor:
    """Convert a stored manuscript file into chapters and sections."""

    def __init__(
        self,
        epub_extractor: EpubExtractor | None = None,
        pdf_extractor: PdfTextExtractor | None = None,
        section_word_limit: int = DEFAULT_SECTION_WORD_LIMIT,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.run_logger = run_logger or RunLogger()
        self.epub_extractor = epub_extractor or EpubExtractor(run_logger=self.run_logger)
        self._pdf_extractor = pdf_extractor
        self.splitter = ChapterSplitter(section_word_limit=section_word_limit)

    @property
    def pdf_extractor(self) -> PdfTextExtractor:
        """Create the PDF extractor lazily so tool detection only runs for PDFs."""

        if self._pdf_extractor is None:
            self._pdf_extractor = PdfTextExtractor()
        return self._pdf_extractor

    def extract(self, path: Path, file_format: str) -> ParsedVolume:
        """Extract the structure of `path` according to its declared format.

        Raises:
            UnsupportedFormatError: `file_format` is not epub, txt, or pdf.
            MissingFileError: `path` does not exist.
            ContentExtractionError: No usable content could be extracted.
        """

        try:
            resolved_format = FileFormat(file_format.strip().lower().lstrip("."))
        except ValueError as exc:
            raise UnsupportedFormatError(file_format) from exc
        if not path.is_file():
            raise MissingFileError(f"Manuscript file not found: {path}")

        if resolved_format is FileFormat.EPUB:
            return self._extract_epub(path)
        if resolved_format is FileFormat.PDF:
            return self._extract_pdf(path)
        return self._extract_text(path)

    def _extract_epub(self, path: Path) -> ParsedVolume:
        metadata, text = self.epub_extractor.extract(path)
        errors: list[str] = []
        parse_method = ParseMethod.EPUB_METADATA
        if not metadata.title and not metadata.creator:
            errors.append("EPUB metadata has neither title nor creator.")
            parse_method = ParseMethod.EPUB_CONTENT
        return ParsedVolume(
            parse_method=parse_method,
            chapters=self.splitter.split(text),
            detected_title=metadata.title,
            detected_author=metadata.creator,
            detected_description=metadata.description,
            errors=tuple(errors),
        )

    def _extract_pdf(self, path: Path) -> ParsedVolume:
        document = self.pdf_extractor.extract(path)
        return ParsedVolume(
            parse_method=ParseMethod.PDF_LAYOUT,
            chapters=self.splitter.split(document.text),
            detected_title=document.title,
            detected_author=document.author,
            detected_description=document.subject,
        )

    def _extract_text(self, path: Path) -> ParsedVolume:
        text = path.read_bytes().decode("utf-8", errors="replace")
        return ParsedVolume(
            parse_method=ParseMethod.TEXT_PATTERN,
            chapters=self.splitter.split(text),
        )

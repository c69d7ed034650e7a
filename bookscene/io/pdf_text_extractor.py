"""PDF text and document-info extraction.

Responsibilities:
- Extract plain text from text-based PDFs with `pdftotext`, falling back to
  `pypdf` when the system tool is not installed.
- Read document-info title/author as detected metadata.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import subprocess

from pypdf import PdfReader
from pypdf.errors import PdfReadError, PyPdfError

from ..errors import ContentExtractionError
from ..runtime_tools import executable_available, resolve_executable

# pypdf surfaces malformed objects as library errors or plain lookup/type errors.
_PYPDF_FAILURES = (PyPdfError, ValueError, KeyError, TypeError)


@dataclass(frozen=True, slots=True)
class PdfDocument:
    """Text and document-info metadata of one PDF."""

    text: str
    title: str = ""
    author: str = ""
    subject: str = ""


class PdfTextExtractor:
    """Extractor for text-based PDFs."""

    def __init__(self, use_pdftotext: bool | None = None) -> None:
        self.use_pdftotext = (
            executable_available("pdftotext") if use_pdftotext is None else use_pdftotext
        )

    def extract(self, pdf_path: Path) -> PdfDocument:
        """Extract text and metadata from a PDF file.

        Raises:
            ContentExtractionError: The PDF is unreadable or carries no text.
        """

        reader = self._open(pdf_path)
        if self.use_pdftotext:
            text = self._run_pdftotext(pdf_path)
        else:
            text = self._text_with_pypdf(reader)
        text = text.replace("\f", "\n").strip()
        if not text:
            raise ContentExtractionError(
                f"No extractable text found in PDF: {pdf_path.name}. "
                "Only text-based PDFs are supported."
            )

        try:
            info = reader.metadata
        except _PYPDF_FAILURES as exc:
            raise ContentExtractionError(
                f"Unreadable PDF metadata in {pdf_path.name}: {exc}"
            ) from exc
        return PdfDocument(
            text=text,
            title=_info_value(info, "title"),
            author=_info_value(info, "author"),
            subject=_info_value(info, "subject"),
        )

    def _open(self, pdf_path: Path) -> PdfReader:
        try:
            return PdfReader(str(pdf_path))
        except (PdfReadError, OSError, ValueError) as exc:
            raise ContentExtractionError(f"Unreadable PDF {pdf_path.name}: {exc}") from exc

    def _run_pdftotext(self, pdf_path: Path) -> str:
        command = [resolve_executable("pdftotext"), "-enc", "UTF-8", str(pdf_path), "-"]
        try:
            result = subprocess.run(command, check=False, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise ContentExtractionError(
                "The `pdftotext` command is required but was not found."
            ) from exc

        if result.returncode != 0:
            details = result.stderr.strip() or "unknown error"
            raise ContentExtractionError(f"pdftotext failed for {pdf_path.name}: {details}")
        return result.stdout

    def _text_with_pypdf(self, reader: PdfReader) -> str:
        """Join page texts with blank lines so paragraph detection sees page breaks."""

        try:
            pages = [(page.extract_text() or "").strip() for page in reader.pages]
        except _PYPDF_FAILURES as exc:
            raise ContentExtractionError(f"PDF text extraction failed: {exc}") from exc
        return "\n\n".join(page for page in pages if page)


def _info_value(info: object, attribute: str) -> str:
    if info is None:
        return ""
    value = getattr(info, attribute, None)
    return " ".join(str(value).split()) if value else ""

"""Unit tests for EPUB, plain-text, and PDF structural extraction."""

from __future__ import annotations

from pathlib import Path
import subprocess
import zipfile

import pytest
from pypdf import PageObject, PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from pytest import MonkeyPatch

from bookscene.errors import ContentExtractionError, MissingFileError, UnsupportedFormatError
from bookscene.io.epub_extractor import EpubExtractor, resolve_manifest_href
from bookscene.io.pdf_text_extractor import PdfDocument, PdfTextExtractor
from bookscene.io.structure_extractor import StructureExtractor
from bookscene.models.status import ParseMethod
from bookscene.text.markup import MarkupTextConverter
from tests.fixture_builders import build_epub_bytes, damage_member, write_epub, xhtml


class _StaticPdfExtractor:
    def __init__(self, document: PdfDocument) -> None:
        self.document = document

    def extract(self, pdf_path: Path) -> PdfDocument:
        _ = pdf_path
        return self.document


def _blank_pdf(path: Path, **metadata: str) -> Path:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    if metadata:
        writer.add_metadata(metadata)
    with path.open("wb") as handle:
        writer.write(handle)
    return path


def test_markup_converter_keeps_paragraphs_and_decodes_entities() -> None:
    """Block tags become blank-line breaks; head content and tags are dropped."""

    markup = (
        "<html><head><title>Skip me</title><style>p {}</style></head><body>"
        "<h1>Chapter 1</h1><p>Tom &amp; Jerry   ran.</p><p>Line one<br/>line two</p>"
        "</body></html>"
    )

    text = MarkupTextConverter().to_text(markup).strip()

    assert text == "Chapter 1\n\nTom & Jerry ran.\n\nLine one\nline two"


def test_markup_converter_ignores_attribute_and_comment_text() -> None:
    """`>` inside attribute values and markup inside comments never leak into text."""

    markup = (
        '<p>Before <img alt="x > y" src="a.png"/> after.</p>'
        "<!-- editor note: <p>draft</p> --><p>Next.</p>"
    )

    text = MarkupTextConverter().to_text(markup).strip()

    assert text == "Before after.\n\nNext."


def test_manifest_hrefs_resolve_relative_to_opf_directory() -> None:
    """Relative, parent, and absolute hrefs should resolve to archive paths."""

    assert resolve_manifest_href("OEBPS/content.opf", "text/ch1.xhtml") == "OEBPS/text/ch1.xhtml"
    assert resolve_manifest_href("OEBPS/content.opf", "../ch%201.xhtml") == "ch 1.xhtml"
    assert resolve_manifest_href("content.opf", "ch1.xhtml") == "ch1.xhtml"
    assert resolve_manifest_href("OEBPS/content.opf", "/root.xhtml") == "root.xhtml"


def test_epub_with_metadata_uses_epub_metadata_parse_method(tmp_path: Path) -> None:
    """OPF title and creator should be detected and chapters read in spine order."""

    epub = write_epub(
        tmp_path / "whale.epub",
        [
            ("ch1.xhtml", xhtml("Chapter 1: Loomings", "Call me Ishmael.")),
            ("ch2.xhtml", xhtml("Chapter 2: The Carpet-Bag", "I stuffed a shirt or two.")),
        ],
        title="Moby-Dick",
        creator="Herman Melville",
        description="A whaling story.",
    )

    parsed = StructureExtractor().extract(epub, "epub")

    assert parsed.parse_method is ParseMethod.EPUB_METADATA
    assert parsed.detected_title == "Moby-Dick"
    assert parsed.detected_author == "Herman Melville"
    assert parsed.detected_description == "A whaling story."
    assert [chapter.title for chapter in parsed.chapters] == ["Loomings", "The Carpet-Bag"]
    assert parsed.errors == ()


def test_epub_without_metadata_records_warning_and_content_method(tmp_path: Path) -> None:
    """Missing title and creator should fall back to content-only parsing."""

    epub = write_epub(tmp_path / "bare.epub", [("a.xhtml", xhtml("Only body text."))])

    parsed = StructureExtractor().extract(epub, "EPUB")

    assert parsed.parse_method is ParseMethod.EPUB_CONTENT
    assert parsed.errors == ("EPUB metadata has neither title nor creator.",)
    assert parsed.chapters[0].title == "Full Text"


def test_epub_skips_spine_items_missing_from_manifest(tmp_path: Path) -> None:
    """Unknown spine idrefs are skipped instead of failing extraction."""

    epub = write_epub(
        tmp_path / "gap.epub",
        [("a.xhtml", xhtml("Chapter 1", "Kept text."))],
        title="Gap",
        extra_spine_ids=("ghost",),
    )

    metadata, text = EpubExtractor().extract(epub)

    assert metadata.title == "Gap"
    assert text == "Chapter 1\n\nKept text."


def test_epub_without_package_document_fails(tmp_path: Path) -> None:
    """An archive with no `.opf` entry cannot be parsed."""

    epub = write_epub(tmp_path / "no-opf.epub", [("a.xhtml", xhtml("x"))], include_opf=False)

    with pytest.raises(ContentExtractionError, match="opf"):
        StructureExtractor().extract(epub, "epub")


def test_corrupt_epub_archive_fails(tmp_path: Path) -> None:
    """Non-zip bytes should surface as a content extraction error."""

    epub = tmp_path / "broken.epub"
    epub.write_bytes(b"definitely not a zip archive")

    with pytest.raises(ContentExtractionError, match="corrupt"):
        StructureExtractor().extract(epub, "epub")


def test_epub_with_damaged_compressed_member_fails(tmp_path: Path) -> None:
    """A member whose deflate stream is broken surfaces as a corrupt archive."""

    body = " ".join(["The tide turned and the harbor emptied."] * 40)
    archive_bytes = build_epub_bytes(
        [("ch1.xhtml", xhtml("Chapter 1", body))],
        title="Tides",
        compression=zipfile.ZIP_DEFLATED,
    )
    epub = tmp_path / "damaged.epub"
    epub.write_bytes(damage_member(archive_bytes, "OEBPS/ch1.xhtml"))

    with pytest.raises(ContentExtractionError, match="EPUB archive is corrupt"):
        StructureExtractor().extract(epub, "epub")


def test_epub_package_with_entity_declarations_is_rejected(tmp_path: Path) -> None:
    """Entity declarations in the OPF are refused rather than expanded."""

    opf = (
        '<?xml version="1.0"?>\n'
        '<!DOCTYPE package [<!ENTITY title "Expanded">]>\n'
        '<package xmlns="http://www.idpf.org/2007/opf"><metadata>'
        '<dc:title xmlns:dc="http://purl.org/dc/elements/1.1/">&title;</dc:title>'
        '</metadata><manifest><item id="a" href="a.xhtml" media-type="application/xhtml+xml"/>'
        '</manifest><spine><itemref idref="a"/></spine></package>'
    )
    epub = tmp_path / "entities.epub"
    with zipfile.ZipFile(epub, "w") as archive:
        archive.writestr("mimetype", "application/epub+zip")
        archive.writestr("content.opf", opf)
        archive.writestr("a.xhtml", xhtml("Body."))

    with pytest.raises(ContentExtractionError, match="Invalid EPUB package document"):
        StructureExtractor().extract(epub, "epub")


def test_epub_with_empty_spine_text_fails(tmp_path: Path) -> None:
    """An EPUB whose documents hold no text has no usable content."""

    epub = write_epub(tmp_path / "empty.epub", [("a.xhtml", xhtml())], title="Empty")

    with pytest.raises(ContentExtractionError, match="No content"):
        StructureExtractor().extract(epub, "epub")


def test_text_file_uses_text_pattern_method(tmp_path: Path) -> None:
    """Plain-text manuscripts are decoded as UTF-8 and split by headings."""

    manuscript = tmp_path / "novel.txt"
    manuscript.write_text("Chapter 1\nOne.\n\nChapter 2\nTwo words.\n", encoding="utf-8")

    parsed = StructureExtractor().extract(manuscript, ".TXT")

    assert parsed.parse_method is ParseMethod.TEXT_PATTERN
    assert [chapter.word_count for chapter in parsed.chapters] == [1, 2]
    assert parsed.word_count == 3


def test_unsupported_format_is_rejected(tmp_path: Path) -> None:
    """Formats outside epub/txt/pdf fail before the file is read."""

    document = tmp_path / "novel.docx"
    document.write_bytes(b"")

    with pytest.raises(UnsupportedFormatError):
        StructureExtractor().extract(document, "docx")


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    """A declared manuscript that does not exist fails validation."""

    with pytest.raises(MissingFileError):
        StructureExtractor().extract(tmp_path / "absent.txt", "txt")


def test_pdf_document_info_becomes_detected_metadata(tmp_path: Path) -> None:
    """PDF text is segmented and document-info fields fill detected metadata."""

    extractor = StructureExtractor(
        pdf_extractor=_StaticPdfExtractor(
            PdfDocument(text="Chapter 1\nPage text.", title="Atlas", author="A. Writer")
        )
    )
    pdf_path = tmp_path / "atlas.pdf"
    pdf_path.write_bytes(b"%PDF-1.4")

    parsed = extractor.extract(pdf_path, "pdf")

    assert parsed.parse_method is ParseMethod.PDF_LAYOUT
    assert parsed.detected_title == "Atlas"
    assert parsed.detected_author == "A. Writer"
    assert parsed.chapters[0].sections[0].clean_text == "Page text."


def test_pdf_extractor_uses_pdftotext_output_and_document_info(
    monkeypatch: MonkeyPatch,
    tmp_path: Path,
) -> None:
    """`pdftotext` stdout is used as text while `pypdf` supplies document info."""

    pdf_path = _blank_pdf(tmp_path / "info.pdf", **{"/Title": "Atlas", "/Author": "A. Writer"})

    def _fake_run(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        _ = kwargs
        return subprocess.CompletedProcess(command, 0, stdout="Chapter 1\fBody.\n", stderr="")

    monkeypatch.setattr(subprocess, "run", _fake_run)

    document = PdfTextExtractor(use_pdftotext=True).extract(pdf_path)

    assert document.text == "Chapter 1\nBody."
    assert document.title == "Atlas"
    assert document.author == "A. Writer"


def test_pdf_extractor_reports_pdftotext_failures(
    monkeypatch: MonkeyPatch,
    tmp_path: Path,
) -> None:
    """A non-zero `pdftotext` exit should include its stderr in the error."""

    pdf_path = _blank_pdf(tmp_path / "fail.pdf")
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda command, **_: subprocess.CompletedProcess(command, 1, stdout="", stderr="boom"),
    )

    with pytest.raises(ContentExtractionError, match="boom"):
        PdfTextExtractor(use_pdftotext=True).extract(pdf_path)


def test_pdf_without_text_layer_is_rejected(tmp_path: Path) -> None:
    """Image-only PDFs are out of scope and fail with a clear message."""

    pdf_path = _blank_pdf(tmp_path / "scan.pdf")

    with pytest.raises(ContentExtractionError, match="text-based"):
        PdfTextExtractor(use_pdftotext=False).extract(pdf_path)


def test_pdf_page_decoding_failures_become_extraction_errors(
    monkeypatch: MonkeyPatch,
    tmp_path: Path,
) -> None:
    """Library errors raised while reading page text are reported, not leaked."""

    pdf_path = _blank_pdf(tmp_path / "broken-page.pdf")

    def _broken_page(self: PageObject, *args: object, **kwargs: object) -> str:
        _ = (self, args, kwargs)
        raise PdfReadError("Invalid content stream")

    monkeypatch.setattr(PageObject, "extract_text", _broken_page)

    with pytest.raises(ContentExtractionError, match="PDF text extraction failed"):
        PdfTextExtractor(use_pdftotext=False).extract(pdf_path)


def test_pdf_unreadable_document_info_becomes_extraction_error(
    monkeypatch: MonkeyPatch,
    tmp_path: Path,
) -> None:
    """A broken info dictionary fails extraction with the file name in the message."""

    pdf_path = _blank_pdf(tmp_path / "broken-info.pdf")

    def _broken_info(self: PdfReader) -> None:
        _ = self
        raise KeyError("/Info")

    monkeypatch.setattr(PageObject, "extract_text", lambda self, *a, **k: "Chapter 1\nBody.")
    monkeypatch.setattr(PdfReader, "metadata", property(_broken_info))

    with pytest.raises(ContentExtractionError, match="broken-info.pdf"):
        PdfTextExtractor(use_pdftotext=False).extract(pdf_path)


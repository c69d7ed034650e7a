"""EPUB archive extraction.

Responsibilities:
- Locate and parse the OPF package document inside the EPUB zip archive.
- Read title/creator/description metadata and the manifest/spine.
- Resolve spine documents relative to the OPF directory and convert them
  to paragraph-preserving plain text in reading order.
"""

from __future__ import annotations

from dataclasses import dataclass
import posixpath
from pathlib import Path
from urllib.parse import unquote
from xml.etree.ElementTree import Element, ParseError
import zipfile
import zlib

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeElementTree

from ..errors import ContentExtractionError
from ..models.datatypes import EpubMetadata
from ..telemetry.logger import RunLogger
from ..text.markup import MarkupTextConverter

# Failures zipfile and zlib raise while reading damaged members.
_ARCHIVE_FAILURES = (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError)


@dataclass(frozen=True, slots=True)
class EpubPackage:
    """Parsed OPF package document.

    Attributes:
        opf_path: Archive path of the OPF entry.
        metadata: Title/creator/description/language metadata.
        manifest: Manifest item id to resolved archive path.
        spine: Ordered manifest ids in reading order.
    """

    opf_path: str
    metadata: EpubMetadata
    manifest: dict[str, str]
    spine: tuple[str, ...]


def _local_name(tag: str) -> str:
    """Strip an XML namespace from an element tag."""

    return tag.rsplit("}", 1)[-1].lower()


def _first_text(root: Element, name: str) -> str:
    for element in root.iter():
        if _local_name(element.tag) == name and element.text and element.text.strip():
            return " ".join(element.text.split())
    return ""


def resolve_manifest_href(opf_path: str, href: str) -> str:
    """Resolve a manifest href to an archive path using forward slashes."""

    decoded = unquote(href).replace("\\", "/")
    if decoded.startswith("/"):
        resolved = decoded.lstrip("/")
    else:
        opf_dir = posixpath.dirname(opf_path.replace("\\", "/"))
        resolved = posixpath.join(opf_dir, decoded) if opf_dir else decoded
    resolved = posixpath.normpath(resolved)
    return resolved[2:] if resolved.startswith("./") else resolved


class EpubExtractor:
    """Extract metadata and reading-order text from EPUB files."""

    def __init__(
        self,
        converter: MarkupTextConverter | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.converter = converter or MarkupTextConverter()
        self.run_logger = run_logger or RunLogger()

    def read_package(self, archive: zipfile.ZipFile) -> EpubPackage:
        """Locate and parse the OPF package document of an open archive."""

        opf_name = next(
            (name for name in archive.namelist() if name.lower().endswith(".opf")),
            None,
        )
        if opf_name is None:
            raise ContentExtractionError("Package document (.opf) not found in EPUB.")

        try:
            root = SafeElementTree.fromstring(archive.read(opf_name))
        except (ParseError, DefusedXmlException) as exc:
            raise ContentExtractionError(f"Invalid EPUB package document: {exc}") from exc

        metadata = EpubMetadata(
            title=_first_text(root, "title"),
            creator=_first_text(root, "creator"),
            description=_first_text(root, "description"),
            language=_first_text(root, "language"),
        )
        manifest: dict[str, str] = {}
        spine: list[str] = []
        for element in root.iter():
            name = _local_name(element.tag)
            if name == "item":
                item_id = element.get("id")
                href = element.get("href")
                if item_id and href:
                    manifest[item_id] = resolve_manifest_href(opf_name, href)
            elif name == "itemref":
                idref = element.get("idref")
                if idref:
                    spine.append(idref)
        return EpubPackage(
            opf_path=opf_name,
            metadata=metadata,
            manifest=manifest,
            spine=tuple(spine),
        )

    def extract(self, epub_path: Path) -> tuple[EpubMetadata, str]:
        """Return OPF metadata and the concatenated spine text.

        Raises:
            ContentExtractionError: The archive is corrupt, has no OPF, or
                yields no text.
        """

        try:
            with zipfile.ZipFile(epub_path) as archive:
                package = self.read_package(archive)
                text = self._spine_text(archive, package)
        except ContentExtractionError:
            raise
        except _ARCHIVE_FAILURES as exc:
            raise ContentExtractionError(f"EPUB archive is corrupt: {exc}") from exc

        if not text:
            raise ContentExtractionError("No content extracted from EPUB.")
        return package.metadata, text

    def _spine_text(self, archive: zipfile.ZipFile, package: EpubPackage) -> str:
        """Convert each resolvable spine document and join them in reading order."""

        entries = {name.lstrip("/"): name for name in archive.namelist()}
        parts: list[str] = []
        for idref in package.spine:
            target = package.manifest.get(idref)
            if target is None:
                self.run_logger.log_event("WARNING", "spine_item_missing", "parse", idref=idref)
                continue
            entry_name = entries.get(target)
            if entry_name is None:
                self.run_logger.log_event(
                    "WARNING", "spine_file_missing", "parse", path=target
                )
                continue
            markup = archive.read(entry_name).decode("utf-8", errors="replace")
            converted = self.converter.to_text(markup).strip()
            if converted:
                parts.append(converted)
        return "\n\n".join(parts).strip()

"""Parsing phase helpers: metadata inference, tree storage, metadata propagation.

Responsibilities:
- Fill missing title/author from an LLM reading of the opening text.
- Replace the stored chapter tree with the freshly parsed one.
- Propagate detected metadata to the volume and to placeholder book fields.
"""

from __future__ import annotations

from dataclasses import replace

from ..config import BooksceneConfig
from ..errors import ProviderError
from ..llm.prompts import METADATA_SAMPLE_WORDS, METADATA_SCHEMA, PromptLibrary
from ..llm.service import LLMService, parse_metadata_response
from ..models.datatypes import ParsedVolume
from ..models.entities import (
    PLACEHOLDER_BOOK_AUTHORS,
    PLACEHOLDER_BOOK_DESCRIPTIONS,
    PLACEHOLDER_BOOK_TITLES,
    Book,
    Chapter,
    Section,
    Volume,
)
from ..models.status import ParseMethod
from ..text.sampling import sample_words


class StructurePhaseMixin:
    """Provide the metadata and tree-storage steps of the parsing phase."""

    config: BooksceneConfig
    llm: LLMService
    prompts: PromptLibrary

    def _infer_missing_metadata(self, parsed: ParsedVolume, volume_id: int) -> ParsedVolume:
        """Ask the LLM for metadata when title or author is missing.

        Inference failures are appended to `errors` and never abort parsing.
        Only still-empty fields are filled.
        """

        if parsed.detected_title and parsed.detected_author:
            return parsed

        sample = sample_words(
            (section.clean_text for chapter in parsed.chapters for section in chapter.sections),
            METADATA_SAMPLE_WORDS,
        )
        if not sample.strip():
            return parsed

        self._on_phase_start("metadata", volume_id)
        try:
            raw = self.llm.generate_json(
                self.prompts.metadata_system_prompt(),
                self.prompts.metadata_prompt(sample),
                METADATA_SCHEMA,
                timeout=self.config.metadata_timeout_seconds,
            )
            inferred = parse_metadata_response(raw)
        except ProviderError as exc:
            self._on_phase_failure("metadata", volume_id, exc)
            return replace(parsed, errors=(*parsed.errors, f"LLM enhancement failed: {exc}"))

        updated = parsed
        if inferred.title and not parsed.detected_title:
            updated = replace(
                updated, detected_title=inferred.title, parse_method=ParseMethod.LLM_INFERENCE
            )
        if inferred.author and not parsed.detected_author:
            updated = replace(updated, detected_author=inferred.author)
        if inferred.description and not parsed.detected_description:
            updated = replace(updated, detected_description=inferred.description)
        self._on_phase_complete("metadata", volume_id)
        return updated

    @staticmethod
    def _store_structure(volume: Volume, parsed: ParsedVolume) -> None:
        """Replace any previously stored chapters and recompute counts."""

        volume.chapters = [
            Chapter(
                number=chapter.number,
                title=chapter.title,
                detection_method=chapter.detection_method,
                detection_confidence=chapter.detection_confidence,
                sections=[
                    Section(
                        number=section.number,
                        raw_text=section.raw_text,
                        clean_text=section.clean_text,
                        word_count=section.word_count,
                        has_dialogue=section.has_dialogue,
                        has_action=section.has_action,
                    )
                    for section in chapter.sections
                ],
            )
            for chapter in parsed.chapters
        ]
        volume.refresh_counts()
        volume.parse_method = parsed.parse_method.value
        volume.parse_errors = list(parsed.errors)

    @staticmethod
    def _propagate_metadata(volume: Volume, book: Book, parsed: ParsedVolume) -> bool:
        """Copy detected metadata onto the volume title and placeholder book fields.

        Returns:
            Whether the book changed.
        """

        title = parsed.detected_title
        if title and (
            not volume.title or volume.title.lower().endswith(f".{volume.file_format}")
        ):
            volume.title = title

        changed = False
        if title and book.title in PLACEHOLDER_BOOK_TITLES:
            book.title = title
            changed = True
        if parsed.detected_author and book.author in PLACEHOLDER_BOOK_AUTHORS:
            book.author = parsed.detected_author
            changed = True
        if parsed.detected_description and book.description in PLACEHOLDER_BOOK_DESCRIPTIONS:
            book.description = parsed.detected_description
            changed = True
        return changed

"""Chapter and act detection for extracted manuscript text.

Responsibilities:
- Detect play structure (ACT/SCENE headings) and regular chapter headings.
- Hand each chapter body to section splitting.
- Keep output deterministic: identical text always yields identical chapters.
"""

from __future__ import annotations

import re

from ..models.datatypes import ParsedChapter, ParsedSection
from ..text.sections import create_section, split_into_sections

PLAY_ACT_CONFIDENCE = 0.9
REGEX_CHAPTER_CONFIDENCE = 0.8
DEFAULT_CHAPTER_CONFIDENCE = 0.5

_NUMBER_WORDS = "one|two|three|four|five|six|seven|eight|nine|ten"
_TITLE_TAIL = r"(?:[:.\-\s]+(?P<title>.*?))?\s*$"

_ACT_RE = re.compile(r"^ACT\s+(?P<number>[IVXLCDM]+|\d+)\s*$", re.IGNORECASE)
_SCENE_RE = re.compile(
    r"^SCENE\s+(?P<number>[IVXLCDM]+|\d+)\b[:.]?\s*(?P<title>.*?)$", re.IGNORECASE
)


class _HeadingPattern:
    """One chapter heading regex with its fallback title."""

    def __init__(self, pattern: str, fallback_title: str | None = None) -> None:
        self.regex = re.compile(pattern, re.IGNORECASE)
        self.fallback_title = fallback_title

    def match_title(self, line: str, chapter_number: int) -> str | None:
        """Return the heading title when `line` matches, else `None`."""

        match = self.regex.match(line)
        if match is None:
            return None
        title = (match.groupdict().get("title") or "").strip()
        if title:
            return title
        return self.fallback_title or f"Chapter {chapter_number}"


# Tested top-to-bottom per line; the first match wins.
_CHAPTER_PATTERNS: tuple[_HeadingPattern, ...] = (
    _HeadingPattern(rf"^chapter\s+(?:\d+|{_NUMBER_WORDS}|[ivxlcdm]+)\b{_TITLE_TAIL}"),
    _HeadingPattern(rf"^ch\.?\s+\d+\b{_TITLE_TAIL}"),
    _HeadingPattern(r"^\d+\.\s+(?P<title>.+?)\s*$"),
    _HeadingPattern(rf"^part\s+(?:\d+|one|two|three)\b{_TITLE_TAIL}"),
    _HeadingPattern(rf"^prologue\b{_TITLE_TAIL}", fallback_title="Prologue"),
    _HeadingPattern(rf"^epilogue\b{_TITLE_TAIL}", fallback_title="Epilogue"),
)


class ChapterSplitter:
    """Split manuscript text into parsed chapters with sections."""

    def __init__(self, section_word_limit: int = 1000) -> None:
        self.section_word_limit = section_word_limit

    def split(self, text: str) -> tuple[ParsedChapter, ...]:
        """Detect chapters in `text`, preferring play structure when ACT headings exist."""

        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = [line.strip() for line in normalized.split("\n")]
        if any(_ACT_RE.match(line) for line in lines):
            chapters = self._split_play(lines)
            if chapters:
                return chapters
        return self._split_regular(lines, normalized)

    def _split_play(self, lines: list[str]) -> tuple[ParsedChapter, ...]:
        """Treat each ACT heading as a chapter and each SCENE heading as a section."""

        chapters: list[ParsedChapter] = []
        preamble: list[str] = []
        act_title: str | None = None
        sections: list[ParsedSection] = []
        scene_buffer: list[str] = []

        def flush_scene() -> None:
            body = "".join(scene_buffer)
            if body.strip():
                sections.append(create_section(len(sections) + 1, body))
            scene_buffer.clear()

        def flush_act() -> None:
            flush_scene()
            if not sections:
                sections.append(create_section(1, ""))
            chapters.append(
                ParsedChapter(
                    number=len(chapters) + 1,
                    title=act_title or "",
                    detection_method="play_act_pattern",
                    detection_confidence=PLAY_ACT_CONFIDENCE,
                    sections=tuple(sections),
                )
            )
            sections.clear()

        for line in lines:
            if _ACT_RE.match(line):
                if act_title is not None:
                    flush_act()
                elif "\n".join(preamble).strip():
                    chapters.append(self._preamble_chapter("\n".join(preamble)))
                act_title = line
                continue

            if act_title is None:
                preamble.append(line)
                continue

            if _SCENE_RE.match(line):
                flush_scene()
                scene_buffer.append(line + "\n\n")
                continue

            scene_buffer.append(line + "\n" if line else "\n")

        if act_title is not None:
            flush_act()
        return tuple(chapters)

    def _split_regular(self, lines: list[str], full_text: str) -> tuple[ParsedChapter, ...]:
        """Split on the first matching chapter heading pattern per line."""

        chapters: list[ParsedChapter] = []
        current_title: str | None = None
        current_lines: list[str] = []

        def flush(title: str, method: str, confidence: float) -> None:
            chapters.append(
                ParsedChapter(
                    number=len(chapters) + 1,
                    title=title,
                    detection_method=method,
                    detection_confidence=confidence,
                    sections=split_into_sections(
                        "\n".join(current_lines), self.section_word_limit
                    ),
                )
            )

        for line in lines:
            if not line or not self._is_heading(line):
                current_lines.append(line)
                continue

            if current_title is not None:
                flush(current_title, "regex_pattern", REGEX_CHAPTER_CONFIDENCE)
            elif "\n".join(current_lines).strip():
                chapters.append(self._preamble_chapter("\n".join(current_lines)))
            current_title = self._match_heading(line, len(chapters) + 1)
            current_lines = []

        if current_title is not None:
            flush(current_title, "regex_pattern", REGEX_CHAPTER_CONFIDENCE)

        if not chapters:
            return (
                ParsedChapter(
                    number=1,
                    title="Full Text",
                    detection_method="default",
                    detection_confidence=DEFAULT_CHAPTER_CONFIDENCE,
                    sections=split_into_sections(full_text, self.section_word_limit),
                ),
            )
        return tuple(chapters)

    def _preamble_chapter(self, text: str) -> ParsedChapter:
        """Keep text found before the first heading as its own leading chapter."""

        return ParsedChapter(
            number=1,
            title="Front Matter",
            detection_method="preamble",
            detection_confidence=DEFAULT_CHAPTER_CONFIDENCE,
            sections=split_into_sections(text, self.section_word_limit),
        )

    @staticmethod
    def _is_heading(line: str) -> bool:
        return any(pattern.regex.match(line) for pattern in _CHAPTER_PATTERNS)

    @staticmethod
    def _match_heading(line: str, chapter_number: int) -> str | None:
        for pattern in _CHAPTER_PATTERNS:
            title = pattern.match_title(line, chapter_number)
            if title is not None:
                return title
        return None


def detect_chapters_from_text(text: str) -> tuple[ParsedChapter, ...]:
    """Module-level convenience wrapper around `ChapterSplitter.split`."""

    return ChapterSplitter().split(text)

"""Section splitting and lexical section flags.

Responsibilities:
- Split chapter text on explicit scene-break lines (`***`, `---`, `___`).
- Re-chunk each block by paragraph so no section exceeds the word budget,
  never splitting a paragraph.
- Flag dialogue and action with simple lexical heuristics.
"""

from __future__ import annotations

import re

from ..models.datatypes import ParsedSection

DEFAULT_SECTION_WORD_LIMIT = 1000

_SCENE_BREAK_RE = re.compile(r"^[ \t]*[*\-_]{3,}[ \t]*$", re.MULTILINE)
_PARAGRAPH_BREAK_RE = re.compile(r"\n[^\S\n]*\n")
_DIALOGUE_MARKS = ('"', "“", "”")
_ACTION_VERB_RE = re.compile(r"\b(?:ran|jumped|fought|attacked|screamed)\b")


def count_words(text: str) -> int:
    """Return the whitespace-delimited token count."""

    return len(text.split())


def create_section(number: int, text: str) -> ParsedSection:
    """Build one parsed section with word count and lexical flags."""

    clean_text = text.strip()
    return ParsedSection(
        number=number,
        raw_text=text,
        clean_text=clean_text,
        word_count=count_words(clean_text),
        has_dialogue=any(mark in clean_text for mark in _DIALOGUE_MARKS),
        has_action="!" in clean_text or _ACTION_VERB_RE.search(clean_text) is not None,
    )


def split_into_sections(
    text: str, max_words: int = DEFAULT_SECTION_WORD_LIMIT
) -> tuple[ParsedSection, ...]:
    """Split chapter text into bounded sections.

    Always returns at least one section; an empty chapter yields one empty
    section so chapter numbering stays backed by content rows.
    """

    sections: list[ParsedSection] = []
    for block in _SCENE_BREAK_RE.split(text):
        block = block.strip()
        if not block:
            continue

        buffer: list[str] = []
        buffer_words = 0
        for paragraph in _PARAGRAPH_BREAK_RE.split(block):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            words = count_words(paragraph)
            if buffer_words > 0 and buffer_words + words > max_words:
                sections.append(create_section(len(sections) + 1, _join_paragraphs(buffer)))
                buffer = []
                buffer_words = 0
            buffer.append(paragraph)
            buffer_words += words

        if buffer:
            sections.append(create_section(len(sections) + 1, _join_paragraphs(buffer)))

    if not sections:
        sections.append(create_section(1, text))
    return tuple(sections)


def _join_paragraphs(paragraphs: list[str]) -> str:
    return "\n\n".join(paragraphs) + "\n\n"

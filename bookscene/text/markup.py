"""XHTML-to-text conversion for EPUB spine documents.

Responsibilities:
- Parse spine markup with BeautifulSoup and drop non-content nodes
  (comments, declarations, `head`, `script`, `style`).
- Turn block-level elements into paragraph breaks and `<br>` into newlines.
- Normalize whitespace while preserving line breaks.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

_NON_CONTENT_TAGS = ("head", "script", "style")
_NON_CONTENT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
_BLOCK_TAGS = ("p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "section", "article")
_INLINE_WHITESPACE_RE = re.compile(r"[^\S\n]+")
_EXCESS_BLANK_LINES_RE = re.compile(r"\n{3,}")


class MarkupTextConverter:
    """Convert one XHTML/HTML document into paragraph-preserving plain text."""

    def to_text(self, markup: str) -> str:
        """Return plain text with paragraphs separated by exactly one blank line."""

        soup = BeautifulSoup(markup.replace("\r\n", "\n").replace("\r", "\n"), "html.parser")
        for node in soup.find_all(string=lambda value: isinstance(value, _NON_CONTENT_STRINGS)):
            node.extract()
        for tag in soup.find_all(_NON_CONTENT_TAGS):
            tag.decompose()
        for tag in soup.find_all("br"):
            tag.replace_with("\n")
        for tag in soup.find_all(_BLOCK_TAGS):
            tag.append("\n\n")

        lines = [
            _INLINE_WHITESPACE_RE.sub(" ", line).strip()
            for line in soup.get_text().split("\n")
        ]
        return _EXCESS_BLANK_LINES_RE.sub("\n\n", "\n".join(lines))

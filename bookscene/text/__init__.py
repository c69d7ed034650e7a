"""Text processing components for Bookscene.

This package contains markup-to-text conversion, section splitting, and
bounded sampling helpers used by extraction and prompt building.
"""

from .markup import MarkupTextConverter
from .sampling import sample_words, truncate_words
from .sections import count_words, create_section, split_into_sections

__all__ = [
    "MarkupTextConverter",
    "count_words",
    "create_section",
    "sample_words",
    "split_into_sections",
    "truncate_words",
]

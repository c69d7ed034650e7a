"""Shared parsing helpers for config, CLI, and upload value normalization."""

from __future__ import annotations

from pathlib import PurePath

from .errors import UnsupportedFormatError

SUPPORTED_FILE_FORMATS = ("epub", "pdf", "txt")


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_positive_int(value: object, field_name: str) -> int:
    """Parse a strictly positive integer setting.

    Raises:
        ValueError: If the value is not an integer or is below 1.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive integer.")
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a positive integer.") from exc
    if parsed < 1:
        raise ValueError(f"`{field_name}` must be a positive integer.")
    return parsed


def parse_non_negative_float(value: object, field_name: str) -> float:
    """Parse a duration-like float setting that may be zero."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a non-negative number.") from exc
    if parsed < 0:
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    return parsed


def normalize_file_format(filename: str | PurePath) -> str:
    """Return the lowercase manuscript format derived from a file extension.

    Raises:
        UnsupportedFormatError: If the extension is not `.epub`, `.pdf`, or `.txt`.
    """

    suffix = PurePath(filename).suffix.lower().lstrip(".")
    if suffix not in SUPPORTED_FILE_FORMATS:
        raise UnsupportedFormatError(suffix or "<none>")
    return suffix

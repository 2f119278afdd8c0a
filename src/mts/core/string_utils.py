"""String manipulation utilities.

All case-insensitive operations use casefold() for proper Unicode handling.
"""

from __future__ import annotations


def normalize_string(s: str | None) -> str:
    """Normalize string for case-insensitive comparison.

    Args:
        s: String to normalize. None is treated as an empty string.

    Returns:
        Normalized string (casefolded and stripped of leading/trailing whitespace).

    Example:
        >>> normalize_string("  LibX265 ")
        'libx265'
    """
    if s is None:
        return ""
    return s.casefold().strip()


def first_non_empty(value: str | None, default: str) -> str:
    """Return value unless it is empty or whitespace-only.

    Args:
        value: Candidate value.
        default: Fallback used when value is blank.

    Returns:
        value (unmodified) if it has non-whitespace content, otherwise default.
    """
    if value is None or not value.strip():
        return default
    return value


def contains_any(haystack: str, needles: tuple[str, ...] | frozenset[str]) -> bool:
    """Check if string contains any of the substrings (case-insensitive).

    Args:
        haystack: String to search in.
        needles: Lower-case substrings to search for.

    Returns:
        True if any needle occurs in haystack.
    """
    folded = haystack.casefold()
    return any(needle in folded for needle in needles)

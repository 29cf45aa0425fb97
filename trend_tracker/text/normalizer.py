"""Keyword normalization into comparison keys.

The normalized form is the deduplication key for keywords, the unique
name of clusters, and the left-hand side of exact product matching.
Korean keywords are frequently written with and without spacing
("아이폰 16" / "아이폰16"), so whitespace and separators are dropped
entirely rather than collapsed.
"""

import unicodedata


def normalize_keyword(text: str | None) -> str:
    """
    Canonicalize a keyword string.

    Applies NFKC (folds full-width Latin and digits, composes Hangul
    jamo into syllables), case-folds, and keeps only letters and digits
    of any script.

    Args:
        text: Raw keyword text.

    Returns:
        Comparison key. Empty string for empty or None input.

    Example:
        >>> normalize_keyword("  아이폰 16 Pro-Max ")
        '아이폰16promax'
    """
    if not text:
        return ""

    folded = unicodedata.normalize("NFKC", text).casefold()
    return "".join(ch for ch in folded if ch.isalnum())

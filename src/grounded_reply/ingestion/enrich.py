"""Metadata derived from extracted text: counts and short summaries."""

from __future__ import annotations

import re

ONE_LINE_LIMIT = 100
FALLBACK_WORDS = 10


def word_count(text: str) -> int:
    return len(text.split())


def one_line_summary(text: str, summary: str = "") -> str:
    """Return a single-line description of a document.

    Uses the first sentence of *summary* when one is available (truncated
    to 100 characters), otherwise the first ten words of *text*.

    >>> one_line_summary("ignored", "Quarterly results. More detail follows.")
    'Quarterly results'
    >>> one_line_summary("one two three")
    'one two three'
    """
    if summary.strip():
        sentences = [s.strip() for s in re.split(r"[.!?]", summary) if s.strip()]
        line = sentences[0] if sentences else ""
        if len(line) > ONE_LINE_LIMIT:
            line = line[: ONE_LINE_LIMIT - 3] + "..."
        return line

    words = text.split()
    line = " ".join(words[:FALLBACK_WORDS])
    if len(words) > FALLBACK_WORDS:
        line += "..."
    return line


def embedding_input(title: str, summary: str, text: str, limit: int) -> str:
    """Text that represents a document in vector space.

    Title and summary lead so that short documents are dominated by what
    they are about; the body is capped at *limit* characters.
    """
    return f"{title}\n{summary}\n{text[:limit]}".strip()

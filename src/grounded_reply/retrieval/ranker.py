"""Cosine-similarity ranking of candidate documents against a query vector."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from grounded_reply.errors import InvalidInput
from grounded_reply.retrieval.models import Document, RankedDocument

DEFAULT_THRESHOLD = 0.8
DEFAULT_TOP_N = 5


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``.

    A zero-magnitude vector has no direction, so the similarity is taken
    to be ``0.0`` instead of raising; any positive threshold excludes it.

    Raises
    ------
    InvalidInput
        When the vectors differ in length.
    """
    if len(a) != len(b):
        raise InvalidInput(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank(
    query: Sequence[float],
    candidates: Iterable[Document],
    threshold: float = DEFAULT_THRESHOLD,
    top_n: int = DEFAULT_TOP_N,
) -> list[RankedDocument]:
    """Score *candidates* against *query* and keep the best *top_n*.

    Parameters
    ----------
    query:
        Embedding of the text being grounded.
    candidates:
        Documents to score.  Documents without an embedding are skipped
        entirely; they are not scored as zero.
    threshold:
        Minimum similarity (inclusive) a document needs to be returned.
    top_n:
        Maximum number of results.

    Returns
    -------
    list[RankedDocument]
        Sorted by similarity, highest first; equal scores keep the
        candidates' original order.  Empty when nothing clears the
        threshold; callers must treat that as a normal outcome.
    """
    if top_n < 0:
        raise InvalidInput(f"top_n must be non-negative, got {top_n}")

    scored = [
        RankedDocument(document=doc, similarity=cosine_similarity(query, doc.embedding))
        for doc in candidates
        if doc.embedding is not None
    ]
    qualifying = [hit for hit in scored if hit.similarity >= threshold]
    # sorted() is stable, so ties keep candidate order.
    qualifying = sorted(qualifying, key=lambda hit: hit.similarity, reverse=True)
    return qualifying[:top_n]

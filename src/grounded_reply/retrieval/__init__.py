"""
Retrieval — document models, store interfaces, and similarity ranking.

This module keeps the database behind clean repository interfaces so
that the ingestion and enhancement layers never need to know which
backend holds the records.

Public surface
--------------
- :class:`DocumentRetriever` — tenant-scoped retrieval + ranking.
- :func:`rank`, :func:`cosine_similarity` — the ranking primitives.
- :class:`DocumentStore`, :class:`SuggestionStore`, :class:`StorageResolver` — abstract backends.
- :class:`Document`, :class:`Suggestion`, :class:`RankedDocument` — data models.
- :func:`clean_nulls` — deep null-stripping applied before every write.
"""

from grounded_reply.retrieval.base import DocumentStore, StorageResolver, SuggestionStore
from grounded_reply.retrieval.cleaning import clean_nulls
from grounded_reply.retrieval.models import (
    Document,
    DocumentStatus,
    RankedDocument,
    RelevantDoc,
    Suggestion,
    SuggestionStatus,
)
from grounded_reply.retrieval.ranker import cosine_similarity, rank
from grounded_reply.retrieval.retriever import DocumentRetriever

__all__ = [
    "Document",
    "DocumentRetriever",
    "DocumentStatus",
    "DocumentStore",
    "RankedDocument",
    "RelevantDoc",
    "StorageResolver",
    "Suggestion",
    "SuggestionStatus",
    "SuggestionStore",
    "clean_nulls",
    "cosine_similarity",
    "rank",
]

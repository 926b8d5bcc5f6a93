"""Tenant-scoped document retrieval.

The retriever loads candidates for exactly one user and ranks them with
its configured threshold and result cap.  Candidate loading and ranking
are separate steps so the enhancement graph can report which one failed.

Usage::

    retriever = DocumentRetriever(store)
    hits = retriever.rank(query_embedding, retriever.candidates("user-1"))
    for hit in hits:
        print(hit.document.title, round(hit.similarity, 3))
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from grounded_reply.config import settings
from grounded_reply.errors import InvalidInput
from grounded_reply.retrieval.base import DocumentStore
from grounded_reply.retrieval.models import Document, RankedDocument
from grounded_reply.retrieval import ranker

logger = logging.getLogger(__name__)


class DocumentRetriever:
    """Load a user's documents and rank them against a query vector.

    Parameters
    ----------
    store:
        Backend holding the documents.
    score_threshold:
        Minimum cosine similarity; results below this are discarded.
    top_n:
        Maximum number of results returned by :meth:`retrieve`.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        score_threshold: float | None = None,
        top_n: int | None = None,
    ) -> None:
        self._store = store
        self.score_threshold = settings.similarity_threshold if score_threshold is None else score_threshold
        self.top_n = settings.max_relevant_docs if top_n is None else top_n

    def candidates(self, user_id: str) -> list[Document]:
        """Every document owned by *user_id*; embedded or not."""
        if not user_id:
            raise InvalidInput("user_id is required for retrieval")
        return self._store.list_for_user(user_id)

    def rank(self, query: Sequence[float], candidates: Sequence[Document]) -> list[RankedDocument]:
        """Rank *candidates* (from :meth:`candidates`) against *query*."""
        hits = ranker.rank(query, candidates, threshold=self.score_threshold, top_n=self.top_n)
        logger.debug(
            "Ranked %d candidate(s): %d above %.2f",
            len(candidates),
            len(hits),
            self.score_threshold,
        )
        return hits

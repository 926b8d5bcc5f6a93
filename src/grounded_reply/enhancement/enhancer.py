"""Suggestion enhancer — the public entry point for grounding a suggestion.

Usage::

    enhancer = SuggestionEnhancer(suggestions, documents, EmbeddingClient(), GenerationClient())
    result = enhancer.enhance("u1", "s-42")
    if result.enhanced:
        for doc in result.relevant_docs:
            print(doc.title, round(doc.similarity, 3))
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from grounded_reply.enhancement.graph import build_graph, create_initial_state
from grounded_reply.enhancement.state import EnhancementServices
from grounded_reply.errors import InvalidInput
from grounded_reply.retrieval.retriever import DocumentRetriever

if TYPE_CHECKING:
    from grounded_reply.enhancement.generator import GenerationClient
    from grounded_reply.ingestion.embedder import EmbeddingClient
    from grounded_reply.retrieval.base import DocumentStore, SuggestionStore
    from grounded_reply.retrieval.models import EnhancementResult

logger = logging.getLogger(__name__)


class SuggestionEnhancer:
    """Rewrite stored suggestions using the owner's most relevant documents.

    Instances hold no per-request state, so one enhancer can serve
    concurrent requests from many threads.

    Parameters
    ----------
    suggestions:
        Suggestion repository; the only thing an enhancement writes to.
    documents:
        Document repository searched for context.
    embedder:
        Embeds the suggestion content.
    generator:
        Produces the grounded rewrite.
    threshold:
        Minimum cosine similarity (defaults to ``settings.similarity_threshold``).
    top_n:
        Maximum documents used (defaults to ``settings.max_relevant_docs``).
    """

    def __init__(
        self,
        suggestions: SuggestionStore,
        documents: DocumentStore,
        embedder: EmbeddingClient,
        generator: GenerationClient,
        *,
        threshold: float | None = None,
        top_n: int | None = None,
    ) -> None:
        self.retriever = DocumentRetriever(documents, score_threshold=threshold, top_n=top_n)
        self._services = EnhancementServices(
            suggestions=suggestions,
            retriever=self.retriever,
            embedder=embedder,
            generator=generator,
        )
        self._graph = build_graph(self._services)

    def enhance(
        self,
        user_id: str,
        suggestion_id: str,
        *,
        cancel: threading.Event | None = None,
    ) -> EnhancementResult:
        """Ground one suggestion in the user's documents.

        Returns the updated projection, or the untouched content with
        ``enhanced=False`` when no document is relevant enough.

        Raises
        ------
        InvalidInput
            Missing ids.
        NotFound
            The suggestion does not exist for *user_id*.
        EmbeddingUnavailable, GenerationUnavailable
            A model call failed; the suggestion is left unmodified.
        StoreWriteError
            The final write failed; nothing was applied.
        EnhancementCancelled
            *cancel* was set before the write.
        """
        if not user_id or not suggestion_id:
            raise InvalidInput("user_id and suggestion_id are required")

        logger.info("Enhancing suggestion %s for user %s", suggestion_id, user_id)
        final_state = self._graph.invoke(create_initial_state(user_id, suggestion_id, cancel=cancel))
        result = final_state["result"]
        logger.info(
            "Suggestion %s done: enhanced=%s with %d document(s)",
            suggestion_id,
            result.enhanced,
            len(result.relevant_docs),
        )
        return result

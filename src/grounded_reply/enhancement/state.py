"""Enhancement state definition — shared across all graph nodes.

The state is the *single source of truth* that flows through every node
of the enhancement graph.  Each node fills in the keys for its own step,
so a field is present only once the step producing it has run.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TypedDict

from grounded_reply.retrieval.models import (
    ContextSnippet,
    Document,
    EnhancementResult,
    RankedDocument,
    Suggestion,
)

if TYPE_CHECKING:
    from grounded_reply.enhancement.generator import GenerationClient
    from grounded_reply.ingestion.embedder import EmbeddingClient
    from grounded_reply.retrieval.base import SuggestionStore
    from grounded_reply.retrieval.retriever import DocumentRetriever


class EnhancementStage(str, Enum):
    """Steps of one enhancement request, in execution order."""

    LOADING_SUGGESTION = "loading_suggestion"
    EMBEDDING_QUERY = "embedding_query"
    RETRIEVING_CANDIDATES = "retrieving_candidates"
    RANKING = "ranking"
    NO_CONTEXT = "no_context"
    ASSEMBLING_CONTEXT = "assembling_context"
    GENERATING = "generating"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class EnhancementServices:
    """Collaborators the nodes call; injected once when the graph is built."""

    suggestions: SuggestionStore
    retriever: DocumentRetriever
    embedder: EmbeddingClient
    generator: GenerationClient


class EnhancementState(TypedDict, total=False):
    """Typed state that flows through the enhancement graph.

    Attributes
    ----------
    user_id:
        Requesting user; every lookup is scoped to them.
    suggestion_id:
        Suggestion being enhanced.
    cancel:
        Optional event set by a caller that abandoned the request.
        Checked right before persisting.
    stage:
        Last stage entered.
    suggestion:
        The stored suggestion as loaded.
    query_embedding:
        Embedding of the suggestion content.
    candidates:
        All of the user's documents.
    ranked:
        Candidates above the similarity threshold, best first.
    context:
        Snippets handed to the generator, in rank order.
    generated:
        Text returned by the generator.
    result:
        Projection returned to the caller.
    """

    user_id: str
    suggestion_id: str
    cancel: threading.Event | None
    stage: EnhancementStage
    suggestion: Suggestion
    query_embedding: list[float]
    candidates: list[Document]
    ranked: list[RankedDocument]
    context: list[ContextSnippet]
    generated: str
    result: EnhancementResult

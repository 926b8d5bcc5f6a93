"""Graph nodes — each function is one step of a suggestion enhancement.

Node contract
-------------
* Accepts the full :class:`EnhancementState` dict plus the injected
  :class:`EnhancementServices`.
* Returns a *partial* dict with **only the keys that changed**.
* Only :func:`persist` writes anything; every earlier node is free of
  side effects, so a request that fails or is abandoned before that step
  leaves the suggestion untouched.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from grounded_reply.enhancement.state import EnhancementServices, EnhancementStage, EnhancementState
from grounded_reply.errors import (
    EnhancementCancelled,
    GroundedReplyError,
    NotFound,
    StoreReadError,
    StoreWriteError,
)
from grounded_reply.retrieval.models import (
    ContextSnippet,
    EnhancementResult,
    RelevantDoc,
    ThreadMessage,
)

logger = logging.getLogger(__name__)

# Sender recorded for the suggestion when it is replayed to the generator.
SUGGESTION_SENDER = "ai"

Node = Callable[[EnhancementState, EnhancementServices], dict[str, Any]]


def stage(
    name: EnhancementStage,
    *,
    wrap: type[GroundedReplyError] = GroundedReplyError,
) -> Callable[[Node], Node]:
    """Tag a node with its stage and log failures with enough context to resume.

    Exceptions outside the error hierarchy are re-raised as *wrap* so the
    caller always sees an ``error_code`` plus the stage and suggestion id.
    """

    def decorator(node: Node) -> Node:
        @functools.wraps(node)
        def run(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
            suggestion_id = state.get("suggestion_id")
            logger.debug("Suggestion %s: %s", suggestion_id, name.value)
            try:
                update = node(state, services)
            except GroundedReplyError as exc:
                exc.context.setdefault("stage", name.value)
                exc.context.setdefault("suggestion_id", suggestion_id)
                _log_failure(suggestion_id, name, exc)
                raise
            except Exception as exc:
                error = wrap(
                    f"{name.value} failed: {exc}",
                    stage=name.value,
                    suggestion_id=suggestion_id,
                )
                _log_failure(suggestion_id, name, error)
                raise error from exc
            return {**update, "stage": name}

        return run

    return decorator


def _log_failure(suggestion_id: str | None, name: EnhancementStage, exc: GroundedReplyError) -> None:
    logger.error(
        "Enhancement of suggestion %s failed at %s: [%s] %s",
        suggestion_id,
        name.value,
        exc.error_code,
        exc.message,
    )


# ── 1. LOAD ───────────────────────────────────────────────────────────


@stage(EnhancementStage.LOADING_SUGGESTION, wrap=StoreReadError)
def load_suggestion(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    suggestion = services.suggestions.get(state["user_id"], state["suggestion_id"])
    if suggestion is None:
        raise NotFound("Suggestion not found", suggestion_id=state["suggestion_id"])
    return {"suggestion": suggestion}


# ── 2. EMBED ──────────────────────────────────────────────────────────


@stage(EnhancementStage.EMBEDDING_QUERY)
def embed_query(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    return {"query_embedding": services.embedder.embed(state["suggestion"].content)}


# ── 3. RETRIEVE ───────────────────────────────────────────────────────


@stage(EnhancementStage.RETRIEVING_CANDIDATES, wrap=StoreReadError)
def retrieve_candidates(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    """Load the requesting user's documents, never anyone else's."""
    return {"candidates": services.retriever.candidates(state["user_id"])}


# ── 4. RANK ───────────────────────────────────────────────────────────


@stage(EnhancementStage.RANKING)
def rank_candidates(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    ranked = services.retriever.rank(state["query_embedding"], state["candidates"])
    logger.info(
        "Suggestion %s: %d of %d document(s) relevant",
        state["suggestion_id"],
        len(ranked),
        len(state["candidates"]),
    )
    return {"ranked": ranked}


def route_after_ranking(state: EnhancementState) -> str:
    """Conditional edge after ``rank``.

    Returns
    -------
    str
        ``"no_context"`` when nothing cleared the threshold,
        ``"assemble_context"`` otherwise.
    """
    return "assemble_context" if state.get("ranked") else "no_context"


# ── 5a. NO CONTEXT ────────────────────────────────────────────────────


@stage(EnhancementStage.NO_CONTEXT)
def no_context(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    """Return the suggestion as-is; the generator is not called."""
    suggestion = state["suggestion"]
    return {
        "result": EnhancementResult(
            suggestion_id=suggestion.id,
            content=suggestion.content,
            enhanced=False,
        )
    }


# ── 5b. ASSEMBLE CONTEXT ──────────────────────────────────────────────


@stage(EnhancementStage.ASSEMBLING_CONTEXT)
def assemble_context(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    context = [
        ContextSnippet(
            content=hit.document.text or "",
            title=hit.document.title,
            similarity=hit.similarity,
        )
        for hit in state["ranked"]
    ]
    return {"context": context}


# ── 6. GENERATE ───────────────────────────────────────────────────────


@stage(EnhancementStage.GENERATING)
def generate(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    original = ThreadMessage(sender=SUGGESTION_SENDER, content=state["suggestion"].content)
    return {"generated": services.generator.generate([original], state["context"])}


# ── 7. PERSIST ────────────────────────────────────────────────────────


@stage(EnhancementStage.PERSISTING)
def persist(state: EnhancementState, services: EnhancementServices) -> dict[str, Any]:
    """Apply content, timestamp and relevant docs in one store write."""
    cancel = state.get("cancel")
    if cancel is not None and cancel.is_set():
        raise EnhancementCancelled("Enhancement abandoned before persisting")

    relevant = [
        RelevantDoc(document_id=hit.document.id, title=hit.document.title, similarity=hit.similarity)
        for hit in state["ranked"]
    ]
    fields = {
        "content": state["generated"],
        "enhanced_at": datetime.now(timezone.utc),
        "relevant_docs": relevant,
    }
    try:
        updated = services.suggestions.update(state["user_id"], state["suggestion_id"], fields)
    except StoreWriteError:
        raise
    except Exception as exc:
        raise StoreWriteError(f"Could not persist enhanced suggestion: {exc}") from exc

    return {
        "result": EnhancementResult(
            suggestion_id=updated.id,
            content=updated.content,
            enhanced=True,
            relevant_docs=updated.relevant_docs or [],
            enhanced_at=updated.enhanced_at,
        )
    }

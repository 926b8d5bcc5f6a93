"""LangGraph graph definition — the suggestion enhancement workflow.

This module wires the nodes defined in :mod:`grounded_reply.enhancement.nodes`
into a compiled :class:`StateGraph`:

1. **Load** the stored suggestion.
2. **Embed** its content.
3. **Retrieve** the requesting user's documents.
4. **Rank** them by cosine similarity (threshold + top-N).
5. Either stop with **no context** or **assemble** the ranked snippets.
6. **Generate** a grounded rewrite.
7. **Persist** it in a single write.

Any node raising ends the run; that is the ``FAILED`` outcome and
nothing has been written.  The graph can be tested without any model
API by injecting fake services (see tests).
"""

from __future__ import annotations

import threading
from typing import Any

from langgraph.graph import END, StateGraph

from grounded_reply.enhancement.nodes import (
    Node,
    assemble_context,
    embed_query,
    generate,
    load_suggestion,
    no_context,
    persist,
    rank_candidates,
    retrieve_candidates,
    route_after_ranking,
)
from grounded_reply.enhancement.state import EnhancementServices, EnhancementState


def _bind(node: Node, services: EnhancementServices) -> Any:
    """Close *node* over *services* so LangGraph sees a ``state -> dict`` callable."""

    def run(state: EnhancementState) -> dict[str, Any]:
        return node(state, services)

    run.__name__ = node.__name__
    return run


def build_graph(services: EnhancementServices) -> Any:
    """Construct and return the compiled enhancement graph.

    Graph topology::

        load_suggestion → embed_query → retrieve_candidates → rank
                                                               │
                                        ┌──────────────────────┤
                                        ▼                      ▼
                                   no_context          assemble_context
                                        │                      ▼
                                        │                  generate
                                        │                      ▼
                                        │                   persist
                                        ▼                      ▼
                                     [ END ] ◄─────────────────┘

    Returns
    -------
    CompiledGraph
        A compiled LangGraph workflow ready for ``.invoke()``.
    """
    workflow = StateGraph(EnhancementState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("load_suggestion", _bind(load_suggestion, services))
    workflow.add_node("embed_query", _bind(embed_query, services))
    workflow.add_node("retrieve_candidates", _bind(retrieve_candidates, services))
    workflow.add_node("rank", _bind(rank_candidates, services))
    workflow.add_node("no_context", _bind(no_context, services))
    workflow.add_node("assemble_context", _bind(assemble_context, services))
    workflow.add_node("generate", _bind(generate, services))
    workflow.add_node("persist", _bind(persist, services))

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("load_suggestion")
    workflow.add_edge("load_suggestion", "embed_query")
    workflow.add_edge("embed_query", "retrieve_candidates")
    workflow.add_edge("retrieve_candidates", "rank")

    # Conditional: short-circuit when nothing is relevant
    workflow.add_conditional_edges(
        "rank",
        route_after_ranking,
        {
            "no_context": "no_context",
            "assemble_context": "assemble_context",
        },
    )
    workflow.add_edge("assemble_context", "generate")
    workflow.add_edge("generate", "persist")
    workflow.add_edge("no_context", END)
    workflow.add_edge("persist", END)

    return workflow.compile()


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def create_initial_state(
    user_id: str,
    suggestion_id: str,
    *,
    cancel: threading.Event | None = None,
) -> dict[str, Any]:
    """Build the initial state dict for ``graph.invoke()``.

    Usage::

        graph = build_graph(services)
        result = graph.invoke(create_initial_state("u1", "s-42"))
        print(result["result"].enhanced)
    """
    return {
        "user_id": user_id,
        "suggestion_id": suggestion_id,
        "cancel": cancel,
    }

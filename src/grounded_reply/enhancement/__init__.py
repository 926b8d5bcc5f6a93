"""
Enhancement — ground stored reply suggestions in the user's documents.

The workflow is a LangGraph state machine with **zero** storage or model
dependencies of its own: stores, the embedding client and the generation
client are injected, so it runs in tests with lightweight fakes.

Public API
----------
- :class:`SuggestionEnhancer` — one call per enhancement request.
- :class:`ReplySuggester` — draft a new pending suggestion from thread history.
- :class:`GenerationClient` — chat-model wrapper for replies, summaries and image descriptions.
- :func:`build_graph` — compile the workflow for custom services.
- :class:`EnhancementState`, :class:`EnhancementStage` — what flows through the graph.
"""

from grounded_reply.enhancement.enhancer import SuggestionEnhancer
from grounded_reply.enhancement.generator import GenerationClient
from grounded_reply.enhancement.graph import build_graph, create_initial_state
from grounded_reply.enhancement.state import EnhancementServices, EnhancementStage, EnhancementState
from grounded_reply.enhancement.suggester import ReplySuggester

__all__ = [
    "EnhancementServices",
    "EnhancementStage",
    "EnhancementState",
    "GenerationClient",
    "ReplySuggester",
    "SuggestionEnhancer",
    "build_graph",
    "create_initial_state",
]

"""Reply suggester: draft the first reply for a thread and store it.

Usage::

    suggester = ReplySuggester(suggestions, GenerationClient())
    suggestion = suggester.suggest(
        "u1",
        "thread-7",
        [ThreadMessage(sender="ana@example.com", content="Can you send the Q3 numbers?")],
    )
    print(suggestion.id, suggestion.status)

The stored suggestion is ``pending`` and ungrounded; grounding it in the
user's documents is :class:`~grounded_reply.enhancement.enhancer.SuggestionEnhancer`'s job.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from grounded_reply.errors import (
    GenerationUnavailable,
    GroundedReplyError,
    InvalidInput,
    StoreWriteError,
)
from grounded_reply.retrieval.models import Suggestion, SuggestionStatus

if TYPE_CHECKING:
    from grounded_reply.enhancement.generator import GenerationClient
    from grounded_reply.retrieval.base import SuggestionStore
    from grounded_reply.retrieval.models import ThreadMessage

logger = logging.getLogger(__name__)


class ReplySuggester:
    """Generate a reply from thread history and persist it as a suggestion.

    Parameters
    ----------
    suggestions:
        Repository the new suggestion is created in.
    generator:
        Drafts the reply; called with no document context.
    """

    def __init__(self, suggestions: SuggestionStore, generator: GenerationClient) -> None:
        self._suggestions = suggestions
        self._generator = generator

    def suggest(self, user_id: str, thread_id: str, messages: list[ThreadMessage]) -> Suggestion:
        """Draft a reply to *messages* (oldest first) and store it as ``pending``.

        Raises
        ------
        InvalidInput
            Missing ids or an empty thread.
        GenerationUnavailable
            The model failed or returned nothing; nothing is stored.
        StoreWriteError
            The suggestion could not be created.
        """
        if not user_id or not thread_id:
            raise InvalidInput("user_id and thread_id are required")
        if not messages:
            raise InvalidInput("At least one thread message is required", thread_id=thread_id)

        logger.info("Suggesting reply for thread %s (%d message(s))", thread_id, len(messages))
        try:
            content = self._generator.generate(messages, [])
        except GenerationUnavailable as exc:
            exc.context.setdefault("thread_id", thread_id)
            logger.error("Reply generation for thread %s failed: %s", thread_id, exc.message)
            raise
        except Exception as exc:
            logger.error("Reply generation for thread %s failed: %s", thread_id, exc)
            raise GenerationUnavailable(f"Generation provider failed: {exc}", thread_id=thread_id) from exc
        if not content or not content.strip():
            logger.error("Reply generation for thread %s returned nothing", thread_id)
            raise GenerationUnavailable("Generation provider returned an empty reply", thread_id=thread_id)

        suggestion = Suggestion(
            user_id=user_id,
            thread_id=thread_id,
            content=content.strip(),
            status=SuggestionStatus.PENDING,
        )
        try:
            created = self._suggestions.create(suggestion)
        except GroundedReplyError:
            raise
        except Exception as exc:
            logger.error("Could not store suggestion for thread %s: %s", thread_id, exc)
            raise StoreWriteError(f"Could not create suggestion: {exc}", thread_id=thread_id) from exc

        logger.info("Stored suggestion %s for thread %s", created.id, thread_id)
        return created

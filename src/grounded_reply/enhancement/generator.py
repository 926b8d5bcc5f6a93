"""Generation client — message history plus ranked context in, text out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from grounded_reply.config import settings
from grounded_reply.enhancement.llm import get_llm
from grounded_reply.enhancement.prompts import (
    build_image_prompt,
    build_reply_prompt,
    build_summary_prompt,
)
from grounded_reply.errors import GenerationUnavailable

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel
    from langchain_core.messages import BaseMessage

    from grounded_reply.retrieval.models import ContextSnippet, ThreadMessage

logger = logging.getLogger(__name__)


class GenerationClient:
    """Wrap chat models behind the reply / summary / vision contracts.

    Every provider failure, timeout or empty completion is raised as
    :class:`GenerationUnavailable`; nothing is retried here.

    Parameters
    ----------
    llm:
        Model that drafts replies.  Defaults to ``settings.llm_model_name``.
    summary_llm:
        Model for document summaries.  Defaults to ``settings.summary_model_name``.
    vision_llm:
        Model for image descriptions.  Defaults to ``settings.vision_model_name``.
    """

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        *,
        summary_llm: BaseChatModel | None = None,
        vision_llm: BaseChatModel | None = None,
    ) -> None:
        self._llm = llm
        self._summary_llm = summary_llm
        self._vision_llm = vision_llm

    # -- lazily built defaults ------------------------------------------------

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = get_llm(
                settings.generation_temperature,
                max_tokens=settings.generation_max_tokens,
            )
        return self._llm

    @property
    def summary_llm(self) -> BaseChatModel:
        if self._summary_llm is None:
            self._summary_llm = get_llm(0.3, model=settings.summary_model_name, max_tokens=150)
        return self._summary_llm

    @property
    def vision_llm(self) -> BaseChatModel:
        if self._vision_llm is None:
            self._vision_llm = get_llm(0.0, model=settings.vision_model_name, max_tokens=500)
        return self._vision_llm

    # -- public API -----------------------------------------------------------

    def generate(self, messages: list[ThreadMessage], context: list[ContextSnippet]) -> str:
        """Draft a reply to *messages* grounded in *context* (rank order kept)."""
        return self._invoke(self.llm, build_reply_prompt(messages, context), "reply")

    def summarize(self, content: str, title: str = "") -> str:
        """Return a 2-3 line summary of a document."""
        prompt = build_summary_prompt(content, title, limit=settings.embedding_text_limit)
        return self._invoke(self.summary_llm, prompt, "summary")

    def describe_image(self, data: bytes, media_type: str) -> str:
        """Return a text description of an image upload."""
        return self._invoke(self.vision_llm, build_image_prompt(data, media_type), "image description")

    # -- internals ------------------------------------------------------------

    def _invoke(self, llm: BaseChatModel, prompt: list[BaseMessage], what: str) -> str:
        try:
            response = llm.invoke(prompt)
        except Exception as exc:
            logger.warning("Generation provider call failed (%s): %s", what, exc)
            raise GenerationUnavailable(f"Generation provider failed: {exc}", task=what) from exc

        text = _content_text(response.content)
        if not text:
            raise GenerationUnavailable(f"Generation provider returned an empty {what}", task=what)
        return text


def _content_text(content: Any) -> str:
    """Flatten a chat response body (string or content blocks) to text."""
    if isinstance(content, str):
        return content.strip()
    parts = [
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content or []
    ]
    return "".join(parts).strip()

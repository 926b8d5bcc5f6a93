"""Prompt templates for reply generation, summaries and image description.

Keeping prompts in one place makes them easy to audit and version.
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from grounded_reply.retrieval.models import ContextSnippet, ThreadMessage

# ── 1. Grounded reply ─────────────────────────────────────────────────

REPLY_SYSTEM = """\
You are an AI assistant helping to draft email responses.
Analyze the email thread and generate a professional, contextually appropriate response.
Keep the tone consistent with previous communications.
Be concise but thorough in addressing all points.
When relevant attachments are provided, ground the response in them; they
are listed from most to least relevant.
"""


def build_reply_prompt(
    messages: list[ThreadMessage],
    context: list[ContextSnippet],
) -> list[BaseMessage]:
    """Build the prompt for drafting a reply grounded in *context*.

    Parameters
    ----------
    messages:
        Thread history, oldest first.  For enhancement this is the
        original suggestion alone.
    context:
        Ranked document snippets.  Their order is the relevance signal
        and is kept exactly as given.
    """
    prompt: list[BaseMessage] = [SystemMessage(content=REPLY_SYSTEM)]
    prompt.extend(
        HumanMessage(content=f"From: {msg.sender}\nContent: {msg.content}") for msg in messages
    )
    if context:
        prompt.append(HumanMessage(content=f"Relevant attachments:\n{_format_context(context)}"))
    return prompt


# ── 2. Document summary ───────────────────────────────────────────────

SUMMARY_SYSTEM = "You are a helpful assistant that creates concise, informative summaries of documents."


def build_summary_prompt(content: str, title: str = "", limit: int = 8000) -> list[BaseMessage]:
    """Build the prompt for a 2-3 line document summary."""
    return [
        SystemMessage(content=SUMMARY_SYSTEM),
        HumanMessage(
            content=(
                f"Document Title: {title}\n"
                f"Document Content:\n{content[:limit]}\n\n"
                "Task: Generate a concise 2-3 line summary (maximum 200 characters) "
                "that gives a detailed overview of what this document is about. "
                "Focus on the key information that would help someone understand "
                "the document's purpose and main content without reading it."
            )
        ),
    ]


# ── 3. Image description ──────────────────────────────────────────────


def build_image_prompt(data: bytes, media_type: str) -> list[BaseMessage]:
    """Build a vision prompt asking for a searchable description of an image."""
    encoded = base64.b64encode(data).decode("ascii")
    return [
        HumanMessage(
            content=[
                {
                    "type": "text",
                    "text": (
                        "Analyze this image and provide a detailed description. "
                        "Transcribe any visible text verbatim."
                    ),
                },
                {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{encoded}"}},
            ]
        )
    ]


# ── Helpers ────────────────────────────────────────────────────────────


def _format_context(context: list[ContextSnippet]) -> str:
    """Listing in rank order, one attachment per entry."""
    parts: list[str] = []
    for snippet in context:
        parts.append(f"- {snippet.title} (similarity={snippet.similarity:.3f}): {snippet.content}")
    return "\n".join(parts)

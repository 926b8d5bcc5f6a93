"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` (e.g. a vLLM
   server exposing ``/v1/chat/completions``); ``ChatOpenAI`` works unchanged.

Clients are built with the configured request timeout and no built-in
retries: a timeout surfaces as a provider failure and the caller decides
whether to try again.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from grounded_reply.config import settings

logger = logging.getLogger(__name__)


def get_llm(
    temperature: float = 0.0,
    *,
    model: str | None = None,
    max_tokens: int | None = None,
) -> ChatOpenAI:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    endpoint instead of the OpenAI cloud API.  A dummy API key
    (``"EMPTY"``) is used because self-hosted servers rarely require one.
    """
    kwargs: dict = {
        "model": model or settings.llm_model_name,
        "temperature": temperature,
        "timeout": settings.request_timeout,
        "max_retries": 0,
    }
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Self-hosted servers don't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)

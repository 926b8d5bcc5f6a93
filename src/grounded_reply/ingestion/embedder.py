"""Embedding client — text in, fixed-length vector out.

The client is stateless: one provider call per :meth:`EmbeddingClient.embed`
and nothing else.  Retries are left to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from grounded_reply.config import settings
from grounded_reply.errors import EmbeddingUnavailable, InvalidInput

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embedding_function() -> Embeddings:
    """Return the configured LangChain embedding provider.

    ``EMBEDDING_PROVIDER=openai`` (default) uses the OpenAI embeddings API;
    ``huggingface`` runs a local sentence-transformer instead.
    """
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)

    from langchain_openai import OpenAIEmbeddings

    kwargs: dict = {
        "model": settings.embedding_model,
        "api_key": settings.openai_api_key,
        "timeout": settings.request_timeout,
        "max_retries": 0,
    }
    if settings.llm_base_url:
        kwargs["base_url"] = settings.llm_base_url
    return OpenAIEmbeddings(**kwargs)


class EmbeddingClient:
    """Wrap a LangChain :class:`Embeddings` behind the ``embed`` contract.

    Parameters
    ----------
    embeddings:
        Provider to call.  Defaults to :func:`get_embedding_function`.
    dimension:
        Expected vector length ``D``; any other length is treated as a
        provider failure.
    """

    def __init__(self, embeddings: Embeddings | None = None, *, dimension: int | None = None) -> None:
        self._embeddings = embeddings
        self.dimension = settings.embedding_dim if dimension is None else dimension

    @property
    def embeddings(self) -> Embeddings:
        # Built lazily so constructing the client never touches the network.
        if self._embeddings is None:
            self._embeddings = get_embedding_function()
        return self._embeddings

    def embed(self, text: str) -> list[float]:
        """Embed *text*.

        Raises
        ------
        InvalidInput
            When *text* is empty or whitespace only.
        EmbeddingUnavailable
            On any provider error or timeout, or a vector of the wrong length.
        """
        if not text or not text.strip():
            raise InvalidInput("Cannot embed empty text")
        try:
            vector = self.embeddings.embed_query(text)
        except Exception as exc:
            logger.warning("Embedding provider call failed: %s", exc)
            raise EmbeddingUnavailable(f"Embedding provider failed: {exc}") from exc
        return self._check(vector)

    def _check(self, vector: list[float]) -> list[float]:
        vector = [float(x) for x in vector]
        if len(vector) != self.dimension:
            raise EmbeddingUnavailable(
                f"Provider returned a {len(vector)}-dim vector, expected {self.dimension}",
                expected_dim=self.dimension,
            )
        return vector

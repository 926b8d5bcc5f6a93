"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from grounded_reply.enhancement.generator import GenerationClient
from grounded_reply.ingestion.embedder import EmbeddingClient
from grounded_reply.retrieval.memory_store import InMemoryDocumentStore, InMemorySuggestionStore


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def document_store() -> InMemoryDocumentStore:
    """Document store sized for the 3-dim vectors used throughout the tests."""
    return InMemoryDocumentStore(dimension=3)


@pytest.fixture()
def suggestion_store() -> InMemorySuggestionStore:
    return InMemorySuggestionStore()


@pytest.fixture()
def embedder() -> MagicMock:
    """Embedding client stub returning a fixed 3-dim vector."""
    mock = MagicMock(spec=EmbeddingClient)
    mock.embed.return_value = [1.0, 0.0, 0.0]
    return mock


@pytest.fixture()
def generator() -> MagicMock:
    mock = MagicMock(spec=GenerationClient)
    mock.generate.return_value = "Grounded reply."
    mock.summarize.return_value = "A short summary. With detail."
    mock.describe_image.return_value = "A chart of quarterly revenue."
    return mock

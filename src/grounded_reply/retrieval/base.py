"""Abstract interfaces for the stores and storage the core depends on.

The core never talks to a database or bucket directly.  Adding a backend
(Firestore, Postgres, S3 …) only requires subclassing these ABCs; the
ingestion pipeline and the enhancer are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from grounded_reply.retrieval.models import Document, IngestionLog, StoredObject, Suggestion


class DocumentStore(ABC):
    """Per-user document repository.

    Every read and write is scoped by ``user_id``; a document owned by
    another user behaves exactly like a missing one.
    """

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def create(self, document: Document) -> Document:
        """Persist a new document and return it."""
        ...

    @abstractmethod
    def get(self, user_id: str, document_id: str) -> Document | None:
        """Return the document, or ``None`` when it does not exist."""
        ...

    @abstractmethod
    def update(self, user_id: str, document_id: str, fields: dict[str, Any]) -> Document:
        """Apply a partial-field update in one write and return the result.

        Raises
        ------
        NotFound
            When the document does not exist for *user_id*.
        StoreWriteError
            When the write could not be applied.
        """
        ...

    @abstractmethod
    def delete(self, user_id: str, document_id: str) -> None:
        ...

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[Document]:
        """Return all documents owned by *user_id*, newest first."""
        ...

    # -- ingestion logs -------------------------------------------------------

    @abstractmethod
    def append_log(self, entry: IngestionLog) -> None:
        ...

    @abstractmethod
    def list_logs(self, user_id: str, document_id: str | None = None) -> list[IngestionLog]:
        ...

    @abstractmethod
    def delete_logs(self, user_id: str, document_id: str) -> int:
        """Delete the log records of one document; return how many went."""
        ...


class SuggestionStore(ABC):
    """Per-user suggestion repository."""

    @abstractmethod
    def create(self, suggestion: Suggestion) -> Suggestion:
        ...

    @abstractmethod
    def get(self, user_id: str, suggestion_id: str) -> Suggestion | None:
        ...

    @abstractmethod
    def update(self, user_id: str, suggestion_id: str, fields: dict[str, Any]) -> Suggestion:
        """Apply *fields* as a single atomic write (last writer wins).

        Implementations must never merge a read-modify-write across
        concurrent callers.
        """
        ...

    @abstractmethod
    def list_for_thread(self, user_id: str, thread_id: str) -> list[Suggestion]:
        ...


class StorageResolver(ABC):
    """Resolves opaque ``source_uri`` references to uploaded bytes."""

    @abstractmethod
    def open(self, source_uri: str) -> StoredObject:
        """Return the blob and its declared media type."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete(self, source_uri: str) -> None:
        """Delete the blob behind *source_uri*.  Optional; raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")

"""In-process reference implementations of the store interfaces.

Records are held as cleaned, JSON-compatible dicts (exactly what a
document database would receive) and re-validated on every read, so the
same null-stripping and schema rules apply as with a real backend.  A
single lock guards each write, which makes :meth:`update` atomic.
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ValidationError

from grounded_reply.config import settings
from grounded_reply.errors import InvalidInput, NotFound, StoreWriteError
from grounded_reply.retrieval.base import DocumentStore, StorageResolver, SuggestionStore
from grounded_reply.retrieval.models import Document, IngestionLog, StoredObject, Suggestion

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_IMMUTABLE_FIELDS = frozenset({"id", "user_id"})


def _apply_update(model_cls: type[ModelT], record: dict[str, Any], fields: dict[str, Any]) -> ModelT:
    """Validate *fields* merged over *record* as a fresh *model_cls*."""
    unknown = set(fields) - set(model_cls.model_fields)
    if unknown:
        raise InvalidInput(f"Unknown field(s) for {model_cls.__name__}: {sorted(unknown)}")
    frozen = _IMMUTABLE_FIELDS & set(fields)
    if frozen:
        raise InvalidInput(f"Field(s) cannot be updated: {sorted(frozen)}")
    try:
        return model_cls.model_validate({**record, **fields})
    except ValidationError as exc:
        raise StoreWriteError(
            f"Rejected update for {model_cls.__name__}", record_id=record.get("id")
        ) from exc


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dict-backed :class:`DocumentStore`.

    Parameters
    ----------
    dimension:
        Required embedding length ``D``; defaults to ``settings.embedding_dim``.
        Documents carrying any other length are refused on write.
    """

    def __init__(self, dimension: int | None = None) -> None:
        self.dimension = settings.embedding_dim if dimension is None else dimension
        self._records: dict[tuple[str, str], dict[str, Any]] = {}
        self._logs: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def create(self, document: Document) -> Document:
        key = (document.user_id, document.id)
        self._check_dimension(document)
        with self._lock:
            if key in self._records:
                raise StoreWriteError("Document already exists", document_id=document.id)
            self._records[key] = document.to_record()
        return document

    def get(self, user_id: str, document_id: str) -> Document | None:
        with self._lock:
            record = self._records.get((user_id, document_id))
        return Document.model_validate(record) if record is not None else None

    def update(self, user_id: str, document_id: str, fields: dict[str, Any]) -> Document:
        key = (user_id, document_id)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                raise NotFound("Document not found", document_id=document_id)
            updated = _apply_update(Document, record, fields)
            self._check_dimension(updated)
            self._records[key] = updated.to_record()
        return updated

    def _check_dimension(self, document: Document) -> None:
        if document.embedding is not None and len(document.embedding) != self.dimension:
            raise InvalidInput(
                f"Embedding has {len(document.embedding)} dimensions, expected {self.dimension}",
                document_id=document.id,
            )

    def delete(self, user_id: str, document_id: str) -> None:
        with self._lock:
            if self._records.pop((user_id, document_id), None) is None:
                raise NotFound("Document not found", document_id=document_id)

    def list_for_user(self, user_id: str) -> list[Document]:
        with self._lock:
            records = [rec for (owner, _), rec in self._records.items() if owner == user_id]
        documents = [Document.model_validate(rec) for rec in records]
        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    def append_log(self, entry: IngestionLog) -> None:
        with self._lock:
            self._logs.append(entry.model_dump(mode="json"))

    def list_logs(self, user_id: str, document_id: str | None = None) -> list[IngestionLog]:
        with self._lock:
            records = list(self._logs)
        return [
            IngestionLog.model_validate(rec)
            for rec in records
            if rec["user_id"] == user_id and (document_id is None or rec["document_id"] == document_id)
        ]

    def delete_logs(self, user_id: str, document_id: str) -> int:
        with self._lock:
            kept = [
                rec
                for rec in self._logs
                if not (rec["user_id"] == user_id and rec["document_id"] == document_id)
            ]
            removed = len(self._logs) - len(kept)
            self._logs = kept
        return removed


class InMemorySuggestionStore(SuggestionStore):
    """Thread-safe dict-backed :class:`SuggestionStore`."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, suggestion: Suggestion) -> Suggestion:
        with self._lock:
            key = (suggestion.user_id, suggestion.id)
            if key in self._records:
                raise StoreWriteError("Suggestion already exists", suggestion_id=suggestion.id)
            self._records[key] = suggestion.to_record()
        return suggestion

    def get(self, user_id: str, suggestion_id: str) -> Suggestion | None:
        with self._lock:
            record = self._records.get((user_id, suggestion_id))
        return Suggestion.model_validate(record) if record is not None else None

    def update(self, user_id: str, suggestion_id: str, fields: dict[str, Any]) -> Suggestion:
        key = (user_id, suggestion_id)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                raise NotFound("Suggestion not found", suggestion_id=suggestion_id)
            updated = _apply_update(Suggestion, record, fields)
            self._records[key] = updated.to_record()
        return updated

    def list_for_thread(self, user_id: str, thread_id: str) -> list[Suggestion]:
        with self._lock:
            records = [
                rec
                for (owner, _), rec in self._records.items()
                if owner == user_id and rec["thread_id"] == thread_id
            ]
        return sorted((Suggestion.model_validate(rec) for rec in records), key=lambda s: s.created_at)


class LocalStorageResolver(StorageResolver):
    """Resolve plain paths and ``file://`` URIs under a root directory.

    Parameters
    ----------
    root:
        Directory relative paths are resolved against.  URIs that escape
        the root are rejected.
    """

    def __init__(self, root: str | Path = ".") -> None:
        self.root = Path(root).resolve()

    def _path(self, source_uri: str) -> Path:
        parsed = urlparse(source_uri)
        if parsed.scheme not in ("", "file"):
            raise InvalidInput(f"Unsupported storage scheme: {parsed.scheme!r}")
        raw = unquote(parsed.path) if parsed.scheme == "file" else source_uri
        path = (self.root / raw).resolve()
        if self.root not in path.parents and path != self.root:
            raise InvalidInput(f"Path escapes storage root: {source_uri!r}")
        return path

    def open(self, source_uri: str) -> StoredObject:
        path = self._path(source_uri)
        media_type, _ = mimetypes.guess_type(path.name)
        return StoredObject(
            data=path.read_bytes(),
            media_type=media_type or "application/octet-stream",
            filename=path.name,
        )

    def delete(self, source_uri: str) -> None:
        self._path(source_uri).unlink()
        logger.info("Deleted blob %s", source_uri)

"""Domain models for documents, suggestions and ranking results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from grounded_reply.retrieval.cleaning import clean_nulls

MetadataValue = Union[str, int, float, bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class DocumentStatus(str, Enum):
    """Ingestion lifecycle of a :class:`Document`."""

    PENDING = "pending"
    PARSED = "parsed"
    EMBEDDED = "embedded"
    FAILED = "failed"


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentError(BaseModel):
    """Failure recorded on a document so partial progress stays inspectable.

    Attributes
    ----------
    stage:
        Ingestion stage that failed (``"extraction"`` or ``"embedding"``).
    code:
        Machine-readable error code of the underlying exception.
    message:
        Human-readable description.
    """

    stage: str
    code: str
    message: str


class Document(BaseModel):
    """An uploaded file turned into searchable text and an embedding.

    Attributes
    ----------
    id:
        Opaque identifier assigned at ingestion.
    user_id:
        Owner.  Documents are never shared across users.
    source_uri:
        Location of the original upload (owned by external storage).
    filename:
        Original filename as uploaded.
    media_type:
        Declared media type of the upload.
    text:
        Extracted plain text (``None`` until extraction completes).
    embedding:
        Fixed-length vector (``None`` until embedding completes).
    metadata:
        Scalar provenance data: title, size, uploader, summaries, …
    status:
        Lifecycle state, see :class:`DocumentStatus`.
    error:
        Populated when ``status`` is ``failed``.
    """

    id: str = Field(default_factory=_new_id)
    user_id: str
    source_uri: str
    filename: str = ""
    media_type: str = ""
    text: str | None = None
    embedding: list[float] | None = None
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)
    status: DocumentStatus = DocumentStatus.PENDING
    error: DocumentError | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("embedding")
    @classmethod
    def _embedding_not_empty(cls, value: list[float] | None) -> list[float] | None:
        if value is not None and len(value) == 0:
            raise ValueError("embedding must not be empty")
        return value

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or self.filename or self.id)

    # -- lifecycle transitions ------------------------------------------------

    def mark_parsed(self, text: str, **metadata: MetadataValue) -> Document:
        """Return a copy carrying extracted *text* in ``parsed`` state."""
        return self.model_copy(
            update={
                "text": text,
                "metadata": {**self.metadata, **metadata},
                "status": DocumentStatus.PARSED,
                "updated_at": _utcnow(),
            }
        )

    def mark_embedded(self, embedding: list[float]) -> Document:
        return self.model_copy(
            update={
                "embedding": list(embedding),
                "status": DocumentStatus.EMBEDDED,
                "updated_at": _utcnow(),
            }
        )

    def mark_failed(self, stage: str, code: str, message: str) -> Document:
        """Return a copy in terminal ``failed`` state; text is kept as-is."""
        return self.model_copy(
            update={
                "status": DocumentStatus.FAILED,
                "error": DocumentError(stage=stage, code=code, message=message),
                "updated_at": _utcnow(),
            }
        )

    def to_record(self) -> dict[str, Any]:
        """Serialise for a backing store that rejects null fields."""
        return clean_nulls(self.model_dump(mode="json"))


class RelevantDoc(BaseModel):
    """Reference to a document that grounded an enhanced suggestion."""

    document_id: str
    title: str
    similarity: float


class Suggestion(BaseModel):
    """An AI-drafted reply for one email thread.

    Enhancement mutates ``content``, ``enhanced_at`` and ``relevant_docs``
    in place; it never creates a second suggestion.
    """

    id: str = Field(default_factory=_new_id)
    user_id: str
    thread_id: str
    content: str
    status: SuggestionStatus = SuggestionStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    enhanced_at: datetime | None = None
    relevant_docs: list[RelevantDoc] | None = None

    def to_record(self) -> dict[str, Any]:
        return clean_nulls(self.model_dump(mode="json"))


class IngestionLog(BaseModel):
    """Outcome of one ingestion stage, kept for observability.

    Log records hang off a document and are removed with it.
    """

    id: str = Field(default_factory=_new_id)
    user_id: str
    document_id: str
    filename: str = ""
    stage: str
    level: str = "info"
    message: str = ""
    created_at: datetime = Field(default_factory=_utcnow)


class StoredObject(BaseModel):
    """Bytes and declared media type returned by a storage resolver."""

    data: bytes
    media_type: str
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


class RankedDocument(BaseModel):
    """A candidate document that cleared the similarity threshold."""

    document: Document
    similarity: float


class ContextSnippet(BaseModel):
    """Ranked document text handed to the generation step, in rank order."""

    content: str
    title: str
    similarity: float


class ThreadMessage(BaseModel):
    """One message of the history passed to the generation step."""

    sender: str
    content: str


class EnhancementResult(BaseModel):
    """Projection of a suggestion after an enhancement request.

    ``enhanced`` is ``False`` when no stored document was relevant enough;
    ``content`` is then the original suggestion text.
    """

    suggestion_id: str
    content: str
    enhanced: bool
    relevant_docs: list[RelevantDoc] = Field(default_factory=list)
    enhanced_at: datetime | None = None

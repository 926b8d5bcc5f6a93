"""Document ingestion — validate, extract, enrich, embed, persist.

Usage::

    pipeline = DocumentIngestionPipeline(store, storage, EmbeddingClient())
    doc = pipeline.ingest(
        IngestRequest(
            user_id="u1",
            source_uri="users/u1/context/report.pdf",
            media_type="application/pdf",
            size_bytes=182_044,
            filename="report.pdf",
        )
    )
    print(doc.status, doc.metadata["one_line_summary"])

Requests that break the upload policy (media type, size) are rejected
with an exception before any external call.  Once a document exists,
extraction and embedding failures are recorded *on the document*
(``status == "failed"``) instead of being raised, so partial progress
stays inspectable.  Persistence failures are always raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, Field

from grounded_reply.config import ALLOWED_MEDIA_TYPES, settings
from grounded_reply.errors import (
    EmbeddingUnavailable,
    ExtractionError,
    GenerationUnavailable,
    GroundedReplyError,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    StoreWriteError,
    UnsupportedMedia,
)
from grounded_reply.ingestion.enrich import embedding_input, one_line_summary, word_count
from grounded_reply.ingestion.loader import extract_text
from grounded_reply.retrieval.models import Document, DocumentStatus, IngestionLog

if TYPE_CHECKING:
    from grounded_reply.enhancement.generator import GenerationClient
    from grounded_reply.ingestion.embedder import EmbeddingClient
    from grounded_reply.retrieval.base import DocumentStore, StorageResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

STAGE_UPLOAD = "upload"
STAGE_EXTRACTION = "extraction"
STAGE_EMBEDDING = "embedding"


class IngestRequest(BaseModel):
    """A stored upload waiting to become a :class:`Document`.

    Attributes
    ----------
    user_id:
        Uploader and owner of the resulting document.
    source_uri:
        Reference understood by the configured storage resolver.
    media_type:
        Declared media type of the upload.
    size_bytes:
        Declared size, checked against the upload ceiling up front.
    filename:
        Original filename.
    title:
        Optional display title; defaults to the filename.
    """

    user_id: str
    source_uri: str
    media_type: str
    size_bytes: int = Field(ge=0)
    filename: str = ""
    title: str | None = None


class DocumentIngestionPipeline:
    """Turn uploads into embedded :class:`Document` records.

    Parameters
    ----------
    store:
        Document repository.
    storage:
        Resolver for upload bytes.
    embedder:
        Embedding client.
    generator:
        Optional generation client, used to describe images and (when
        *generate_summaries* is on) to summarise documents.
    max_upload_bytes:
        Size ceiling; defaults to ``settings.max_upload_bytes`` (50 MiB).
    generate_summaries:
        Whether to ask the generator for a concise summary.
    """

    def __init__(
        self,
        store: DocumentStore,
        storage: StorageResolver,
        embedder: EmbeddingClient,
        generator: GenerationClient | None = None,
        *,
        max_upload_bytes: int | None = None,
        generate_summaries: bool | None = None,
    ) -> None:
        self._store = store
        self._storage = storage
        self._embedder = embedder
        self._generator = generator
        self.max_upload_bytes = settings.max_upload_bytes if max_upload_bytes is None else max_upload_bytes
        self.generate_summaries = (
            settings.generate_summaries if generate_summaries is None else generate_summaries
        )

    # -- public API -----------------------------------------------------------

    def validate(self, request: IngestRequest) -> None:
        """Check the upload policy without any external call.

        Raises
        ------
        InvalidInput
            Missing owner or source reference.
        UnsupportedMedia
            Media type outside the allow-list.
        PayloadTooLarge
            Declared size above the ceiling.
        """
        if not request.user_id or not request.source_uri:
            raise InvalidInput("user_id and source_uri are required")
        if request.media_type not in ALLOWED_MEDIA_TYPES:
            raise UnsupportedMedia(
                f"File type not supported: {request.media_type!r}",
                media_type=request.media_type,
            )
        if request.size_bytes > self.max_upload_bytes:
            raise PayloadTooLarge(
                f"File size {request.size_bytes} exceeds the {self.max_upload_bytes} byte limit",
                size_bytes=request.size_bytes,
            )

    def ingest(self, request: IngestRequest) -> Document:
        """Ingest one upload and return the resulting document.

        The returned document is ``embedded`` on success and ``failed``
        (with ``error`` set) when extraction or embedding went wrong.
        Every call creates a new document; uploads are never deduplicated.
        """
        self.validate(request)
        now = datetime.now(timezone.utc)
        document = Document(
            user_id=request.user_id,
            source_uri=request.source_uri,
            filename=request.filename,
            media_type=request.media_type,
            metadata={
                "title": request.title or request.filename or request.source_uri,
                "filename": request.filename,
                "size": request.size_bytes,
                "uploaded_by": request.user_id,
                "uploaded_at": now.isoformat(),
            },
            created_at=now,
            updated_at=now,
        )
        self._create(document)
        self._log(document, STAGE_UPLOAD, "info", "Document created")
        logger.info("Ingesting document %s (%s) for user %s", document.id, request.media_type, request.user_id)

        document = self._extract(document)
        if document.status is DocumentStatus.FAILED:
            return document
        return self._embed(document)

    def ingest_many(self, requests: list[IngestRequest], *, max_workers: int = 4) -> list[Document]:
        """Ingest several uploads concurrently.

        Every request is validated before any work starts.  Results come
        back in input order once *all* ingestions have settled; if any of
        them raised, the first such error is re-raised after that.
        """
        for request in requests:
            self.validate(request)
        if not requests:
            return []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(self.ingest, request) for request in requests]
            wait(futures)
        return [future.result() for future in futures]

    def get(self, user_id: str, document_id: str) -> Document:
        document = self._store.get(user_id, document_id)
        if document is None:
            raise NotFound("Document not found", document_id=document_id)
        return document

    def list_documents(self, user_id: str) -> list[Document]:
        """All documents of *user_id*, newest first."""
        return self._store.list_for_user(user_id)

    def delete(self, user_id: str, document_id: str) -> None:
        """Delete a document, its blob and its ingestion logs.

        Blob deletion is best effort: a storage failure is logged and the
        record is removed anyway.
        """
        document = self.get(user_id, document_id)
        try:
            self._storage.delete(document.source_uri)
        except Exception:
            logger.warning("Could not delete blob %s for document %s", document.source_uri, document_id, exc_info=True)
        self._write("delete document", document_id, self._store.delete, user_id, document_id)
        removed = self._write("delete ingestion logs", document_id, self._store.delete_logs, user_id, document_id)
        logger.info("Deleted document %s and %d log record(s)", document_id, removed)

    # -- stages ---------------------------------------------------------------

    def _extract(self, document: Document) -> Document:
        try:
            blob = self._storage.open(document.source_uri)
            if blob.size > self.max_upload_bytes:
                raise PayloadTooLarge(
                    f"Stored file is {blob.size} bytes, above the {self.max_upload_bytes} byte limit",
                    size_bytes=blob.size,
                )
            content = extract_text(blob.data, document.media_type, describe_image=self._describe_image)
        except GroundedReplyError as exc:
            return self._fail(document, STAGE_EXTRACTION, exc)
        except Exception as exc:
            logger.exception("Unexpected extraction failure for document %s", document.id)
            return self._fail(document, STAGE_EXTRACTION, ExtractionError(str(exc)))

        summary = self._summarize(document, content.text)
        metadata = {
            "word_count": word_count(content.text),
            "page_count": content.page_count,
            "one_line_summary": one_line_summary(content.text, summary),
        }
        if summary:
            metadata["concise_summary"] = summary

        document = document.mark_parsed(content.text, **metadata)
        self._save(document, "text", "metadata", "status", "updated_at")
        self._log(document, STAGE_EXTRACTION, "info", f"Extracted {metadata['word_count']} words")
        return document

    def _embed(self, document: Document) -> Document:
        text = embedding_input(
            document.title,
            str(document.metadata.get("concise_summary", "")),
            document.text or "",
            settings.embedding_text_limit,
        )
        try:
            vector = self._embedder.embed(text)
        except (EmbeddingUnavailable, InvalidInput) as exc:
            return self._fail(document, STAGE_EMBEDDING, exc)

        document = document.mark_embedded(vector)
        self._save(document, "embedding", "status", "updated_at")
        self._log(document, STAGE_EMBEDDING, "info", f"Embedded ({len(vector)} dims)")
        return document

    # -- helpers --------------------------------------------------------------

    def _describe_image(self, data: bytes, media_type: str) -> str:
        if self._generator is None:
            raise ExtractionError("Image uploads need a generation client", media_type=media_type)
        return self._generator.describe_image(data, media_type)

    def _summarize(self, document: Document, text: str) -> str:
        """Concise summary, or ``""``; a failed summary never fails ingestion."""
        if not (self.generate_summaries and self._generator is not None):
            return ""
        try:
            return self._generator.summarize(text, document.title)
        except GenerationUnavailable as exc:
            logger.warning("Summary skipped for document %s: %s", document.id, exc)
            return ""

    def _fail(self, document: Document, stage: str, exc: GroundedReplyError) -> Document:
        logger.error(
            "Ingestion of document %s failed at %s: [%s] %s",
            document.id,
            stage,
            exc.error_code,
            exc.message,
        )
        failed = document.mark_failed(stage, exc.error_code, exc.message)
        self._save(failed, "status", "error", "updated_at")
        self._log(failed, stage, "error", exc.message)
        return failed

    def _create(self, document: Document) -> None:
        self._write("create document", document.id, self._store.create, document)

    def _save(self, document: Document, *fields: str) -> None:
        """Write *fields* of *document* in one partial update."""
        update = {name: getattr(document, name) for name in fields}
        self._write("update document", document.id, self._store.update, document.user_id, document.id, update)

    def _log(self, document: Document, stage: str, level: str, message: str) -> None:
        entry = IngestionLog(
            user_id=document.user_id,
            document_id=document.id,
            filename=document.filename,
            stage=stage,
            level=level,
            message=message,
        )
        self._write("append ingestion log", document.id, self._store.append_log, entry)

    @staticmethod
    def _write(action: str, document_id: str, call: Callable[..., T], *args: Any) -> T:
        """Run a store call, raising backend failures as :class:`StoreWriteError`."""
        try:
            return call(*args)
        except GroundedReplyError:
            raise
        except Exception as exc:
            raise StoreWriteError(f"Could not {action}: {exc}", document_id=document_id) from exc

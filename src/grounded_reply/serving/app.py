"""FastAPI application exposing ingestion and enhancement over HTTP.

Authentication happens upstream: the gateway in front of this service
sets ``X-User-Id`` for the signed-in user, and every route scopes its
work to that user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from grounded_reply.config import configure_logging, settings
from grounded_reply.enhancement.enhancer import SuggestionEnhancer
from grounded_reply.enhancement.generator import GenerationClient
from grounded_reply.enhancement.suggester import ReplySuggester
from grounded_reply.errors import (
    EmbeddingUnavailable,
    EnhancementCancelled,
    ExtractionError,
    GenerationUnavailable,
    GroundedReplyError,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    StoreReadError,
    UnsupportedMedia,
)
from grounded_reply.ingestion.embedder import EmbeddingClient
from grounded_reply.ingestion.pipeline import DocumentIngestionPipeline, IngestRequest
from grounded_reply.retrieval.base import SuggestionStore
from grounded_reply.retrieval.memory_store import (
    InMemoryDocumentStore,
    InMemorySuggestionStore,
    LocalStorageResolver,
)
from grounded_reply.retrieval.models import (
    Document,
    DocumentError,
    EnhancementResult,
    Suggestion,
    ThreadMessage,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[GroundedReplyError], int] = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    EnhancementCancelled: status.HTTP_409_CONFLICT,
    PayloadTooLarge: status.HTTP_413_CONTENT_TOO_LARGE,
    UnsupportedMedia: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    ExtractionError: status.HTTP_502_BAD_GATEWAY,
    EmbeddingUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    GenerationUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreReadError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# ── Wiring ────────────────────────────────────────────────────────────


@dataclass
class Services:
    """Everything the routes need, built once per process."""

    pipeline: DocumentIngestionPipeline
    enhancer: SuggestionEnhancer
    suggester: ReplySuggester
    suggestions: SuggestionStore


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Default wiring: in-process stores and local-disk storage.

    Deployments with real databases override this dependency.
    """
    documents = InMemoryDocumentStore()
    suggestions = InMemorySuggestionStore()
    embedder = EmbeddingClient()
    generator = GenerationClient()
    return Services(
        pipeline=DocumentIngestionPipeline(
            documents, LocalStorageResolver(settings.storage_root), embedder, generator
        ),
        enhancer=SuggestionEnhancer(suggestions, documents, embedder, generator),
        suggester=ReplySuggester(suggestions, generator),
        suggestions=suggestions,
    )


def current_user(x_user_id: str = Header(..., min_length=1)) -> str:
    return x_user_id


# ── Request / Response schemas ────────────────────────────────────────


class UploadRequest(BaseModel):
    """An upload already placed in storage, ready to ingest."""

    source_uri: str
    media_type: str
    size_bytes: int = Field(ge=0)
    filename: str = ""
    title: str | None = None


class DocumentResponse(BaseModel):
    """Document projection; the raw embedding is never sent to clients."""

    id: str
    filename: str
    media_type: str
    status: str
    metadata: dict[str, Any]
    error: DocumentError | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, doc: Document) -> DocumentResponse:
        return cls(
            id=doc.id,
            filename=doc.filename,
            media_type=doc.media_type,
            status=doc.status.value,
            metadata=doc.metadata,
            error=doc.error,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


class SuggestRequest(BaseModel):
    """Thread history to draft a reply for, oldest message first."""

    messages: list[ThreadMessage] = Field(min_length=1)


class SuggestResponse(BaseModel):
    success: bool = True
    suggestion: Suggestion


class EnhanceResponse(BaseModel):
    success: bool = True
    suggestion: EnhancementResult


# ── App ───────────────────────────────────────────────────────────────


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Grounded Reply API",
        version="0.1.0",
        description="Document ingestion and context-grounded reply suggestions.",
    )

    @app.exception_handler(GroundedReplyError)
    async def _domain_error(request: Request, exc: GroundedReplyError) -> JSONResponse:
        code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.to_dict())
        return JSONResponse(status_code=code, content={"error": exc.message, "code": exc.error_code})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "ok"}

    @app.post("/documents", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
    def upload_document(
        body: UploadRequest,
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> DocumentResponse:
        """Ingest an uploaded file; failures after validation are reported on the document."""
        doc = services.pipeline.ingest(IngestRequest(user_id=user_id, **body.model_dump()))
        return DocumentResponse.from_document(doc)

    @app.get("/documents", response_model=list[DocumentResponse])
    def list_documents(
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> list[DocumentResponse]:
        return [DocumentResponse.from_document(d) for d in services.pipeline.list_documents(user_id)]

    @app.get("/documents/{document_id}", response_model=DocumentResponse)
    def get_document(
        document_id: str,
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> DocumentResponse:
        return DocumentResponse.from_document(services.pipeline.get(user_id, document_id))

    @app.delete("/documents/{document_id}")
    def delete_document(
        document_id: str,
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> dict[str, bool]:
        services.pipeline.delete(user_id, document_id)
        return {"success": True}

    @app.get("/threads/{thread_id}/suggestions", response_model=list[Suggestion])
    def list_suggestions(
        thread_id: str,
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> list[Suggestion]:
        return services.suggestions.list_for_thread(user_id, thread_id)

    @app.post(
        "/threads/{thread_id}/suggestions",
        response_model=SuggestResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def create_suggestion(
        thread_id: str,
        body: SuggestRequest,
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> SuggestResponse:
        """Draft a reply for the thread and store it as a pending suggestion."""
        return SuggestResponse(suggestion=services.suggester.suggest(user_id, thread_id, body.messages))

    @app.post("/suggestions/{suggestion_id}/enhance", response_model=EnhanceResponse)
    def enhance_suggestion(
        suggestion_id: str,
        user_id: str = Depends(current_user),
        services: Services = Depends(get_services),
    ) -> EnhanceResponse:
        """Ground a suggestion in the user's documents and return the result."""
        return EnhanceResponse(suggestion=services.enhancer.enhance(user_id, suggestion_id))

    return app


app = create_app()

"""Unit tests for the document ingestion pipeline (storage and models mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from grounded_reply.config import MIB
from grounded_reply.errors import (
    EmbeddingUnavailable,
    GenerationUnavailable,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    StoreWriteError,
    UnsupportedMedia,
)
from grounded_reply.ingestion.pipeline import DocumentIngestionPipeline, IngestRequest
from grounded_reply.retrieval.base import StorageResolver
from grounded_reply.retrieval.memory_store import InMemoryDocumentStore
from grounded_reply.retrieval.models import Document, DocumentStatus, StoredObject

TEXT = b"Quarterly budget review. Headcount stays flat and travel is cut by ten percent."


def _storage(data: bytes = TEXT, media_type: str = "text/plain") -> MagicMock:
    storage = MagicMock(spec=StorageResolver)
    storage.open.return_value = StoredObject(data=data, media_type=media_type, filename="budget.txt")
    return storage


def _request(**overrides) -> IngestRequest:
    fields = {
        "user_id": "u1",
        "source_uri": "users/u1/budget.txt",
        "media_type": "text/plain",
        "size_bytes": len(TEXT),
        "filename": "budget.txt",
    }
    fields.update(overrides)
    return IngestRequest(**fields)


@pytest.fixture()
def storage() -> MagicMock:
    return _storage()


@pytest.fixture()
def pipeline(document_store, storage, embedder, generator) -> DocumentIngestionPipeline:
    return DocumentIngestionPipeline(document_store, storage, embedder, generator, generate_summaries=False)


# ── Upload policy ──────────────────────────────────────────────────────


class TestValidation:
    def test_oversized_upload_rejected_before_any_call(
        self, pipeline: DocumentIngestionPipeline, storage: MagicMock, embedder: MagicMock, document_store
    ) -> None:
        with pytest.raises(PayloadTooLarge):
            pipeline.ingest(_request(size_bytes=51 * MIB))
        storage.open.assert_not_called()
        embedder.embed.assert_not_called()
        assert document_store.list_for_user("u1") == []

    def test_zero_ceiling_is_honoured(self, document_store, storage: MagicMock, embedder: MagicMock) -> None:
        pipeline = DocumentIngestionPipeline(document_store, storage, embedder, max_upload_bytes=0)
        assert pipeline.max_upload_bytes == 0
        with pytest.raises(PayloadTooLarge):
            pipeline.ingest(_request(size_bytes=1))
        storage.open.assert_not_called()

    def test_exact_ceiling_accepted(self, pipeline: DocumentIngestionPipeline) -> None:
        pipeline.validate(_request(size_bytes=50 * MIB))

    def test_unsupported_media_rejected(self, pipeline: DocumentIngestionPipeline, storage: MagicMock) -> None:
        with pytest.raises(UnsupportedMedia):
            pipeline.ingest(_request(media_type="application/zip"))
        storage.open.assert_not_called()

    def test_missing_owner(self, pipeline: DocumentIngestionPipeline) -> None:
        with pytest.raises(InvalidInput):
            pipeline.ingest(_request(user_id=""))


# ── Happy path ─────────────────────────────────────────────────────────


class TestIngest:
    def test_text_upload_is_embedded(self, pipeline: DocumentIngestionPipeline, document_store) -> None:
        doc = pipeline.ingest(_request())

        assert doc.status is DocumentStatus.EMBEDDED
        assert doc.embedding == [1.0, 0.0, 0.0]
        assert doc.text.startswith("Quarterly budget review")
        assert doc.metadata["title"] == "budget.txt"
        assert doc.metadata["word_count"] == 13
        assert doc.metadata["one_line_summary"].endswith("...")

        stored = document_store.get("u1", doc.id)
        assert stored.status is DocumentStatus.EMBEDDED
        assert stored.embedding == [1.0, 0.0, 0.0]

    def test_embedding_input_leads_with_title(self, pipeline: DocumentIngestionPipeline, embedder: MagicMock) -> None:
        pipeline.ingest(_request(title="Budget"))
        (text,) = embedder.embed.call_args.args
        assert text.startswith("Budget\n")

    def test_logs_each_stage(self, pipeline: DocumentIngestionPipeline, document_store) -> None:
        doc = pipeline.ingest(_request())
        stages = [log.stage for log in document_store.list_logs("u1", doc.id)]
        assert stages == ["upload", "extraction", "embedding"]

    def test_same_upload_twice_creates_two_documents(self, pipeline: DocumentIngestionPipeline, document_store) -> None:
        first = pipeline.ingest(_request())
        second = pipeline.ingest(_request())
        assert first.id != second.id
        assert len(document_store.list_for_user("u1")) == 2

    def test_summary_recorded_when_enabled(
        self, document_store, storage: MagicMock, embedder: MagicMock, generator: MagicMock
    ) -> None:
        pipeline = DocumentIngestionPipeline(document_store, storage, embedder, generator, generate_summaries=True)
        doc = pipeline.ingest(_request())
        assert doc.metadata["concise_summary"] == "A short summary. With detail."
        assert doc.metadata["one_line_summary"] == "A short summary"

    def test_summary_failure_does_not_fail_ingestion(
        self, document_store, storage: MagicMock, embedder: MagicMock, generator: MagicMock
    ) -> None:
        generator.summarize.side_effect = GenerationUnavailable("down")
        pipeline = DocumentIngestionPipeline(document_store, storage, embedder, generator, generate_summaries=True)
        doc = pipeline.ingest(_request())
        assert doc.status is DocumentStatus.EMBEDDED
        assert "concise_summary" not in doc.metadata

    def test_image_described_by_generator(self, document_store, embedder: MagicMock, generator: MagicMock) -> None:
        storage = _storage(b"\x89PNG", "image/png")
        pipeline = DocumentIngestionPipeline(document_store, storage, embedder, generator, generate_summaries=False)
        doc = pipeline.ingest(_request(media_type="image/png", filename="chart.png", size_bytes=4))
        assert doc.text == "A chart of quarterly revenue."
        generator.describe_image.assert_called_once_with(b"\x89PNG", "image/png")


# ── Failures recorded on the document ──────────────────────────────────


class TestFailures:
    def test_embedding_failure_keeps_extracted_text(
        self, pipeline: DocumentIngestionPipeline, embedder: MagicMock, document_store
    ) -> None:
        embedder.embed.side_effect = EmbeddingUnavailable("provider down")
        doc = pipeline.ingest(_request())

        assert doc.status is DocumentStatus.FAILED
        assert doc.text is not None
        assert doc.embedding is None
        assert doc.error.stage == "embedding"
        assert doc.error.code == "EMBEDDING_UNAVAILABLE"

        stored = document_store.get("u1", doc.id)
        assert stored.status is DocumentStatus.FAILED
        assert stored.text is not None
        assert stored.embedding is None

    def test_empty_file_fails_extraction(self, document_store, embedder: MagicMock, generator: MagicMock) -> None:
        pipeline = DocumentIngestionPipeline(document_store, _storage(b"   "), embedder, generator)
        doc = pipeline.ingest(_request(size_bytes=3))
        assert doc.status is DocumentStatus.FAILED
        assert doc.error.stage == "extraction"
        assert doc.text is None
        embedder.embed.assert_not_called()

    def test_storage_failure_fails_extraction(self, document_store, embedder: MagicMock) -> None:
        storage = _storage()
        storage.open.side_effect = FileNotFoundError("users/u1/budget.txt")
        pipeline = DocumentIngestionPipeline(document_store, storage, embedder)
        doc = pipeline.ingest(_request())
        assert doc.status is DocumentStatus.FAILED
        assert doc.error.code == "EXTRACTION_FAILED"

    def test_stored_blob_above_ceiling_fails(self, document_store, embedder: MagicMock) -> None:
        pipeline = DocumentIngestionPipeline(document_store, _storage(b"x" * 64), embedder, max_upload_bytes=32)
        doc = pipeline.ingest(_request(size_bytes=10))
        assert doc.status is DocumentStatus.FAILED
        assert doc.error.code == "PAYLOAD_TOO_LARGE"

    def test_failure_is_logged(self, pipeline: DocumentIngestionPipeline, embedder: MagicMock, document_store) -> None:
        embedder.embed.side_effect = EmbeddingUnavailable("provider down")
        doc = pipeline.ingest(_request())
        last = document_store.list_logs("u1", doc.id)[-1]
        assert last.level == "error"
        assert last.stage == "embedding"

    def test_store_failure_is_raised(self, storage: MagicMock, embedder: MagicMock) -> None:
        store = MagicMock(spec=InMemoryDocumentStore)
        store.create.side_effect = OSError("disk full")
        pipeline = DocumentIngestionPipeline(store, storage, embedder)
        with pytest.raises(StoreWriteError):
            pipeline.ingest(_request())

    def test_log_write_failure_is_raised(self, storage: MagicMock, embedder: MagicMock) -> None:
        store = MagicMock(spec=InMemoryDocumentStore)
        store.append_log.side_effect = ConnectionError("firestore down")
        pipeline = DocumentIngestionPipeline(store, storage, embedder)
        with pytest.raises(StoreWriteError, match="firestore down") as excinfo:
            pipeline.ingest(_request())
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_update_failure_is_raised(self, storage: MagicMock, embedder: MagicMock) -> None:
        store = MagicMock(spec=InMemoryDocumentStore)
        store.update.side_effect = TimeoutError("deadline exceeded")
        pipeline = DocumentIngestionPipeline(store, storage, embedder)
        with pytest.raises(StoreWriteError):
            pipeline.ingest(_request())


# ── Concurrency ────────────────────────────────────────────────────────


class TestIngestMany:
    def test_results_in_input_order(self, pipeline: DocumentIngestionPipeline) -> None:
        requests = [_request(filename=f"f{i}.txt") for i in range(5)]
        docs = pipeline.ingest_many(requests, max_workers=3)
        assert [d.filename for d in docs] == [f"f{i}.txt" for i in range(5)]
        assert all(d.status is DocumentStatus.EMBEDDED for d in docs)

    def test_invalid_member_rejected_up_front(self, pipeline: DocumentIngestionPipeline, storage: MagicMock) -> None:
        with pytest.raises(UnsupportedMedia):
            pipeline.ingest_many([_request(), _request(media_type="video/mp4")])
        storage.open.assert_not_called()

    def test_empty_batch(self, pipeline: DocumentIngestionPipeline) -> None:
        assert pipeline.ingest_many([]) == []


# ── Read / delete ──────────────────────────────────────────────────────


class TestDocumentAccess:
    def test_get_and_list(self, pipeline: DocumentIngestionPipeline) -> None:
        doc = pipeline.ingest(_request())
        assert pipeline.get("u1", doc.id).id == doc.id
        assert [d.id for d in pipeline.list_documents("u1")] == [doc.id]
        assert pipeline.list_documents("u2") == []

    def test_get_other_users_document(self, pipeline: DocumentIngestionPipeline) -> None:
        doc = pipeline.ingest(_request())
        with pytest.raises(NotFound):
            pipeline.get("u2", doc.id)

    def test_delete_cascades(self, pipeline: DocumentIngestionPipeline, storage: MagicMock, document_store) -> None:
        doc = pipeline.ingest(_request())
        pipeline.delete("u1", doc.id)
        storage.delete.assert_called_once_with("users/u1/budget.txt")
        assert document_store.get("u1", doc.id) is None
        assert document_store.list_logs("u1", doc.id) == []

    def test_delete_survives_blob_failure(
        self, pipeline: DocumentIngestionPipeline, storage: MagicMock, document_store
    ) -> None:
        doc = pipeline.ingest(_request())
        storage.delete.side_effect = PermissionError("denied")
        pipeline.delete("u1", doc.id)
        assert document_store.get("u1", doc.id) is None

    def test_delete_store_failure_is_raised(self, storage: MagicMock, embedder: MagicMock) -> None:
        store = MagicMock(spec=InMemoryDocumentStore)
        store.get.return_value = Document(user_id="u1", source_uri="users/u1/budget.txt")
        store.delete_logs.side_effect = ConnectionError("firestore down")
        pipeline = DocumentIngestionPipeline(store, storage, embedder)
        with pytest.raises(StoreWriteError):
            pipeline.delete("u1", "d1")
        store.delete.assert_called_once_with("u1", "d1")

    def test_delete_missing_record_stays_not_found(self, pipeline: DocumentIngestionPipeline) -> None:
        with pytest.raises(NotFound):
            pipeline.delete("u1", "missing")

"""Unit tests for the serving layer."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from httpx import Response

from grounded_reply.enhancement.enhancer import SuggestionEnhancer
from grounded_reply.enhancement.suggester import ReplySuggester
from grounded_reply.errors import GenerationUnavailable
from grounded_reply.ingestion.pipeline import DocumentIngestionPipeline
from grounded_reply.retrieval.memory_store import LocalStorageResolver
from grounded_reply.retrieval.models import Document, Suggestion
from grounded_reply.serving.app import Services, app, get_services

HEADERS = {"X-User-Id": "u1"}


@pytest.fixture()
def services(tmp_path: Path, document_store, suggestion_store, embedder, generator) -> Services:
    (tmp_path / "notes.txt").write_text("Budget approved for the offsite in March.")
    return Services(
        pipeline=DocumentIngestionPipeline(
            document_store, LocalStorageResolver(tmp_path), embedder, generator, generate_summaries=False
        ),
        enhancer=SuggestionEnhancer(suggestion_store, document_store, embedder, generator, threshold=0.8, top_n=5),
        suggester=ReplySuggester(suggestion_store, generator),
        suggestions=suggestion_store,
    )


@pytest.fixture()
def client(services: Services) -> Iterator[TestClient]:
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client: TestClient, **overrides) -> Response:
    body = {"source_uri": "notes.txt", "media_type": "text/plain", "size_bytes": 41, "filename": "notes.txt"}
    body.update(overrides)
    return client.post("/documents", json=body, headers=HEADERS)


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestDocumentRoutes:
    def test_upload_returns_embedded_document(self, client: TestClient) -> None:
        response = _upload(client)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "embedded"
        assert body["metadata"]["title"] == "notes.txt"
        assert "embedding" not in body

    def test_unsupported_media(self, client: TestClient) -> None:
        response = _upload(client, media_type="application/zip")
        assert response.status_code == 415
        assert response.json()["code"] == "UNSUPPORTED_MEDIA"

    def test_oversized_upload(self, client: TestClient) -> None:
        response = _upload(client, size_bytes=60 * 1024 * 1024)
        assert response.status_code == 413

    def test_missing_user_header(self, client: TestClient) -> None:
        response = client.get("/documents")
        assert response.status_code == 422

    def test_list_get_delete(self, client: TestClient) -> None:
        doc_id = _upload(client).json()["id"]

        listed = client.get("/documents", headers=HEADERS).json()
        assert [d["id"] for d in listed] == [doc_id]
        assert client.get("/documents", headers={"X-User-Id": "u2"}).json() == []

        assert client.get(f"/documents/{doc_id}", headers=HEADERS).status_code == 200
        assert client.delete(f"/documents/{doc_id}", headers=HEADERS).json() == {"success": True}
        assert client.get(f"/documents/{doc_id}", headers=HEADERS).status_code == 404

    def test_other_users_document_is_not_found(self, client: TestClient) -> None:
        doc_id = _upload(client).json()["id"]
        response = client.get(f"/documents/{doc_id}", headers={"X-User-Id": "u2"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestSuggestionRoutes:
    def test_enhance_with_context(self, client: TestClient, services: Services, suggestion_store) -> None:
        _upload(client)
        suggestion = suggestion_store.create(Suggestion(user_id="u1", thread_id="t1", content="Sounds good."))

        response = client.post(f"/suggestions/{suggestion.id}/enhance", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["suggestion"]["enhanced"] is True
        assert body["suggestion"]["content"] == "Grounded reply."
        assert body["suggestion"]["relevant_docs"][0]["title"] == "notes.txt"

        listed = client.get("/threads/t1/suggestions", headers=HEADERS).json()
        assert listed[0]["content"] == "Grounded reply."

    def test_enhance_without_context(self, client: TestClient, suggestion_store) -> None:
        suggestion = suggestion_store.create(Suggestion(user_id="u1", thread_id="t1", content="Sounds good."))
        body = client.post(f"/suggestions/{suggestion.id}/enhance", headers=HEADERS).json()
        assert body["suggestion"]["enhanced"] is False
        assert body["suggestion"]["content"] == "Sounds good."

    def test_enhance_missing_suggestion(self, client: TestClient) -> None:
        response = client.post("/suggestions/nope/enhance", headers=HEADERS)
        assert response.status_code == 404

    def test_generation_outage_maps_to_503(
        self, client: TestClient, suggestion_store, document_store, generator: MagicMock
    ) -> None:
        document_store.create(
            Document(user_id="u1", source_uri="a.txt", text="context", embedding=[1.0, 0.0, 0.0])
        )
        suggestion = suggestion_store.create(Suggestion(user_id="u1", thread_id="t1", content="Hi"))
        generator.generate.side_effect = GenerationUnavailable("provider down")

        response = client.post(f"/suggestions/{suggestion.id}/enhance", headers=HEADERS)

        assert response.status_code == 503
        assert response.json() == {"error": "provider down", "code": "GENERATION_UNAVAILABLE"}


class TestCreateSuggestionRoute:
    MESSAGES = {"messages": [{"sender": "ana@example.com", "content": "Is the offsite budget approved?"}]}

    def test_create_then_list_and_enhance(self, client: TestClient, generator: MagicMock) -> None:
        generator.generate.return_value = "Let me check and get back to you."

        response = client.post("/threads/t1/suggestions", json=self.MESSAGES, headers=HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["suggestion"]["status"] == "pending"
        assert body["suggestion"]["thread_id"] == "t1"
        assert body["suggestion"]["content"] == "Let me check and get back to you."

        listed = client.get("/threads/t1/suggestions", headers=HEADERS).json()
        assert [s["id"] for s in listed] == [body["suggestion"]["id"]]

        _upload(client)
        generator.generate.return_value = "Grounded reply."
        enhanced = client.post(f"/suggestions/{body['suggestion']['id']}/enhance", headers=HEADERS).json()
        assert enhanced["suggestion"]["enhanced"] is True

    def test_empty_history_rejected(self, client: TestClient) -> None:
        response = client.post("/threads/t1/suggestions", json={"messages": []}, headers=HEADERS)
        assert response.status_code == 422

    def test_generation_outage_stores_nothing(
        self, client: TestClient, suggestion_store, generator: MagicMock
    ) -> None:
        generator.generate.side_effect = GenerationUnavailable("provider down")

        response = client.post("/threads/t1/suggestions", json=self.MESSAGES, headers=HEADERS)

        assert response.status_code == 503
        assert response.json()["code"] == "GENERATION_UNAVAILABLE"
        assert suggestion_store.list_for_thread("u1", "t1") == []

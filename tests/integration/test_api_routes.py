"""HTTP-level tests for the /api/v1 routes.

The app is created with real ChromaDB and SQLite stores under ``tmp_path``
and deterministic providers; ``TestClient`` runs the lifespan so the
background ingestion runs on the app's own event loop.
"""

from __future__ import annotations

import base64
import time
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient

from conftest import KeywordEmbeddingProvider, ScriptedLLMProvider, make_png, make_text
from rag_feeder.config.settings import Settings
from rag_feeder.main import create_app

_TERMINAL = {"completed", "completed-partial", "failed"}


@pytest.fixture
def client(settings: Settings, mock_config: dict[str, Any]) -> Iterator[TestClient]:
    overrides = {
        "embedding_provider": KeywordEmbeddingProvider(),
        "llm_provider": ScriptedLLMProvider(page_texts=["Oil filter torque: 25 ft-lbs. Use a new gasket each time."]),
    }
    app = create_app(settings, mock_config, overrides)
    with TestClient(app) as test_client:
        yield test_client


def _wait_for_terminal(client: TestClient, document_id: str, tenant_id: str = "acme") -> dict[str, Any]:
    for _ in range(200):
        response = client.get(f"/api/v1/documents/{document_id}", params={"tenant_id": tenant_id})
        assert response.status_code == 200
        body = response.json()
        if body["processing_status"] in _TERMINAL:
            return body
        time.sleep(0.05)
    raise AssertionError(f"document {document_id} never reached a terminal status")


def _ingest_spec(client: TestClient) -> str:
    response = client.post(
        "/api/v1/rag",
        json={
            "action": "process_text",
            "companyId": "acme",
            "title": "Oil Filter Torque Spec",
            "content": make_text(2400),
            "documentType": "manual",
            "tags": ["engine"],
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["chunk_count"] == 3
    assert body["content_length"] == 2400
    assert body["status"] == "processing"
    return body["document_id"]


class TestIngestion:
    def test_text_document_lifecycle(self, client: TestClient) -> None:
        document_id = _ingest_spec(client)

        document = _wait_for_terminal(client, document_id)
        assert document["processing_status"] == "completed"
        assert document["chunk_count"] == 3
        assert document["content_length"] == 2400
        assert document["tags"] == ["engine"]

        chunks = client.get(f"/api/v1/documents/{document_id}/chunks", params={"tenant_id": "acme"}).json()
        assert chunks["total"] == 3
        assert [c["chunk_index"] for c in chunks["chunks"]] == [0, 1, 2]

        listing = client.get("/api/v1/documents", params={"tenant_id": "acme"}).json()
        assert listing["total"] == 1
        assert "content" not in listing["documents"][0]

    def test_vision_document(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/rag",
            json={
                "action": "process_vision",
                "tenant_id": "acme",
                "title": "Scanned Torque Card",
                "images": [{"base64": base64.b64encode(make_png()).decode(), "pageNumber": 1}],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["pages_processed"] == 1
        document = _wait_for_terminal(client, body["document_id"])
        assert document["document_type"] == "manual"
        assert document["content"].startswith("--- Page 1 ---")

    def test_short_content_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/rag",
            json={"action": "process_text", "tenant_id": "acme", "title": "Stub", "content": "too short"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
        assert client.get("/api/v1/documents", params={"tenant_id": "acme"}).json()["total"] == 0


class TestQueries:
    def test_search_and_chat(self, client: TestClient) -> None:
        document_id = _ingest_spec(client)
        _wait_for_terminal(client, document_id)

        search = client.post(
            "/api/v1/rag",
            json={"action": "search", "tenant_id": "acme", "query": "oil filter", "matchThreshold": 0.6},
        ).json()
        assert len(search["results"]) == 3
        assert search["results"][0]["document_id"] == document_id
        assert search["results"][0]["tags"] == ["engine"]

        chat = client.post(
            "/api/v1/rag",
            json={"action": "chat", "company_id": "acme", "userMessage": "What is the oil filter torque?"},
        ).json()
        assert chat["answer"] == "Torque the oil filter to 25 ft-lbs [Source 1]."
        assert chat["sources"][0]["title"] == "Oil Filter Torque Spec"
        assert chat["sources"][0]["chunk_count"] == 3

    def test_search_is_tenant_scoped(self, client: TestClient) -> None:
        _wait_for_terminal(client, _ingest_spec(client))

        response = client.post(
            "/api/v1/rag",
            json={"action": "search", "tenant_id": "globex", "query": "oil filter torque", "min_similarity": 0.0},
        )

        assert response.status_code == 200
        assert response.json()["results"] == []


class TestDeletion:
    def test_delete_via_action_and_route(self, client: TestClient) -> None:
        first = _ingest_spec(client)
        second = _ingest_spec(client)
        _wait_for_terminal(client, first)
        _wait_for_terminal(client, second)

        by_action = client.post(
            "/api/v1/rag", json={"action": "delete_document", "tenant_id": "acme", "document_id": first}
        ).json()
        assert by_action == {
            "success": True,
            "message": "Document deleted successfully",
            "document_id": first,
            "chunks_deleted": 3,
        }

        by_route = client.delete(f"/api/v1/documents/{second}", params={"tenant_id": "acme"})
        assert by_route.status_code == 200
        assert by_route.json()["chunks_deleted"] == 3
        assert client.get("/api/v1/documents", params={"tenant_id": "acme"}).json()["total"] == 0

    def test_reprocess(self, client: TestClient) -> None:
        document_id = _ingest_spec(client)
        _wait_for_terminal(client, document_id)

        response = client.post(
            "/api/v1/rag", json={"action": "process_document", "tenant_id": "acme", "documentId": document_id}
        )

        assert response.status_code == 200
        assert response.json()["chunk_count"] == 3
        assert _wait_for_terminal(client, document_id)["chunk_count"] == 3


class TestErrors:
    def test_unknown_action(self, client: TestClient) -> None:
        response = client.post("/api/v1/rag", json={"action": "summarize", "tenant_id": "acme"})

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_missing_tenant(self, client: TestClient) -> None:
        response = client.post("/api/v1/rag", json={"action": "search", "query": "oil"})
        assert response.status_code == 400

        listing = client.get("/api/v1/documents")
        assert listing.status_code == 400

    def test_unknown_document(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/no-such-id", params={"tenant_id": "acme"})

        assert response.status_code == 404
        assert response.json() == {"error": "DocumentNotFoundError", "detail": "Document no-such-id not found"}

    def test_other_tenants_document_is_not_found(self, client: TestClient) -> None:
        document_id = _ingest_spec(client)
        _wait_for_terminal(client, document_id)

        response = client.delete(f"/api/v1/documents/{document_id}", params={"tenant_id": "globex"})

        assert response.status_code == 404
        assert _wait_for_terminal(client, document_id)["processing_status"] == "completed"

    def test_request_id_header(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.headers.get("x-request-id")


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["providers"] == {"embedding": True, "llm": True, "vector_store": True}
        assert body["active_runs"] == 0

    def test_degraded_without_credentials(self, settings: Settings, mock_config: dict[str, Any]) -> None:
        keyless = settings.model_copy(update={"openai_api_key": ""})

        with TestClient(create_app(keyless, mock_config)) as keyless_client:
            body = keyless_client.get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["providers"]["embedding"] is False
        assert body["providers"]["llm"] is False

import pytest
from fastapi.testclient import TestClient

from rag_visualizer.config import get_settings
from rag_visualizer.main import app, get_orchestrator


class ExplodingOrchestrator:
    async def run(self, *args, **kwargs):
        raise RuntimeError("disk on fire")


def test_sample_data_lists_documents(client: TestClient) -> None:
    response = client.get("/api/sample-data")

    assert response.status_code == 200
    documents = response.json()["documents"]
    assert [document["id"] for document in documents] == [1, 2, 3]
    assert documents[1]["title"] == "Binary Search Algorithm"
    assert len(documents[1]["chunks"]) == 3


@pytest.mark.parametrize("document_id", [2, "2", 2.0, "2nd"])
def test_process_document_returns_chunks_and_steps(client: TestClient, document_id: object) -> None:
    response = client.post("/api/process-document", json={"documentId": document_id})

    assert response.status_code == 200
    payload = response.json()
    assert payload["documentId"] == 2
    assert payload["title"] == "Binary Search Algorithm"
    assert [chunk["id"] for chunk in payload["chunks"]] == ["2-0", "2-1", "2-2"]
    assert all(len(chunk["vector"]) == 8 for chunk in payload["chunks"])
    assert payload["chunks"][0]["content"].startswith("Binary search is an efficient algorithm")
    assert [step["step"] for step in payload["processingSteps"]] == [
        "Document Loading",
        "Text Chunking",
        "Vector Embedding",
        "Database Storage",
    ]
    assert payload["metadata"]["processingTimeMs"] >= 0


@pytest.mark.parametrize("body", [{"documentId": 999}, {"documentId": "abc"}, {}])
def test_process_document_unknown_id_returns_404(client: TestClient, body: dict[str, object]) -> None:
    response = client.post("/api/process-document", json=body)

    assert response.status_code == 404
    assert response.json() == {"error": "Document not found"}


def test_process_document_maps_crash_to_500(client: TestClient) -> None:
    app.dependency_overrides[get_orchestrator] = lambda: ExplodingOrchestrator()

    response = client.post("/api/process-document", json={"documentId": 1})

    assert response.status_code == 500
    assert response.json() == {"error": "Processing failed", "details": "disk on fire"}


def test_api_rate_limit_returns_429(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_RATE_LIMIT", "2")
    get_settings.cache_clear()

    with TestClient(app) as limited_client:
        statuses = [limited_client.get("/api/sample-data").status_code for _ in range(3)]
        health = limited_client.get("/health")
        response = limited_client.get("/api/sample-data")

    assert statuses == [200, 200, 429]
    assert health.status_code == 200
    assert response.status_code == 429
    assert response.json() == {
        "error": "Too many requests from this IP, please try again later.",
        "retryAfter": "15 minutes",
    }

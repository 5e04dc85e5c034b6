from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import RecordingAuditSink, ScriptedGenerator, VocabularyEmbedder
from support_assistant.models import DocumentStatus, utcnow
from support_assistant.services import build_services
from support_assistant.storage.datastore import InMemoryDatastore
from support_assistant.web.app import create_app


@pytest.fixture
def services(settings):
    return build_services(
        settings,
        datastore=InMemoryDatastore(),
        embedder=VocabularyEmbedder(),
        generator=ScriptedGenerator("VS1 is 2.05V."),
        audit=RecordingAuditSink(),
    )


@pytest.fixture
def client(services):
    app = create_app(services=services, start_monitor=False)
    return TestClient(app)


def _create(client, content="VS1 is nominally 2.05V", **extra):
    payload = {"name": "Power guide", "content": content, "ingest": False, **extra}
    response = client.post("/api/documents", json=payload)
    assert response.status_code == 201
    return response.json()


def test_health_check(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_document_lifecycle(client):
    document = _create(client)
    assert document["status"] == "pending"
    assert "raw_content" not in document

    response = client.post(f"/api/documents/{document['id']}/ingest", params={"wait": True})
    assert response.status_code == 200
    indexed = response.json()
    assert indexed["status"] == "indexed"
    assert indexed["progress"] == 100
    assert indexed["metadata"]["chunk_count"] == 1

    assert client.get(f"/api/documents/{document['id']}").json()["status"] == "indexed"

    assert client.delete(f"/api/documents/{document['id']}").status_code == 204
    assert client.get(f"/api/documents/{document['id']}").status_code == 404


def test_chat_answers_from_indexed_document(client):
    document = _create(client)
    client.post(f"/api/documents/{document['id']}/ingest", params={"wait": True})

    response = client.post("/api/chat", json={"question": "what is VS1 voltage", "user_id": "tech-1"})

    assert response.status_code == 200
    body = response.json()
    assert "2.05V" in body["answer"]
    assert body["grounded"] is True
    assert body["escalated"] is False
    assert body["references"][0]["document_id"] == document["id"]
    assert body["references"][0]["source_tier"] == "semantic"


def test_empty_question_is_rejected(client):
    response = client.post("/api/chat", json={"question": "   "})
    assert response.status_code == 400


def test_text_document_without_content_is_rejected(client):
    response = client.post("/api/documents", json={"name": "Empty", "content": ""})
    assert response.status_code == 400


def test_unknown_document_is_404(client):
    assert client.get("/api/documents/missing").status_code == 404
    assert client.post("/api/documents/missing/ingest").status_code == 404
    assert client.delete("/api/documents/missing").status_code == 404


def test_recover_stuck_endpoint(client, services):
    document = _create(client)
    services.datastore.update_document(
        document["id"],
        status=DocumentStatus.PROCESSING,
        progress=30,
        updated_at=utcnow() - timedelta(minutes=120),
    )

    response = client.post("/api/maintenance/recover-stuck")

    assert response.status_code == 200
    [recovered] = response.json()
    assert recovered["status"] == "error"
    assert recovered["progress"] == 0
    assert "30%" in recovered["error_message"]
    assert services.audit.events[0][0] == "document_auto_recovery"


def test_usage_endpoint_lists_ledger(client):
    document = _create(client)
    client.post(f"/api/documents/{document['id']}/ingest", params={"wait": True})
    client.post("/api/chat", json={"question": "what is VS1 voltage"})

    records = client.get("/api/usage", params={"limit": 10}).json()

    assert {r["operation_type"] for r in records} == {"embedding", "text"}
    assert client.get("/api/usage", params={"limit": 0}).status_code == 400

import pytest
from fastapi.testclient import TestClient

from api.v1.routes.assistant import get_pipeline
from app.main import app
from app.settings import settings


class BrokenPipeline:
    async def run(self, query, session=None):
        raise RuntimeError("database exploded")


@pytest.fixture
def client(kit):
    app.dependency_overrides[get_pipeline] = lambda: kit.pipeline
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_info_lists_assistant_endpoints(client):
    endpoints = client.get("/info").json()["endpoints"]
    assert "/api/v1/assistant/respond" in endpoints["respond"]


def test_refusal_is_a_normal_answer(client):
    response = client.post("/api/v1/assistant/respond", json={"text": "dosage for Amoxicillin"})
    assert response.status_code == 200
    body = response.json()
    assert "prescription-only" in body["response"]
    assert settings.clinical_source in body["sources"]
    assert body["suggestedSessionContext"]["lastDrugName"] == "Amoxicillin"
    assert body["suggestedSessionContext"]["productType"] == "prescription"


def test_explicit_fields_skip_extraction(client):
    response = client.post(
        "/api/v1/assistant/respond",
        json={
            "intent": "dosage",
            "drugName": "aspirin",
            "sessionContext": {"recentDrugs": ["warfarin"], "patientContext": "adult"},
        },
    )
    assert response.status_code == 200
    assert "CLINICAL ALERT" in response.json()["response"]


def test_session_context_round_trip(client):
    first = client.post("/api/v1/assistant/respond", json={"text": "Paracetamol dosage"}).json()
    second = client.post(
        "/api/v1/assistant/respond",
        json={"text": "500mg tablet", "sessionContext": first["suggestedSessionContext"]},
    ).json()
    assert "adult, elderly" in second["response"]
    assert second["suggestedSessionContext"]["lastDrugName"] == "Paracetamol 500mg tablet"


def test_request_without_intent_or_text_is_rejected(client):
    response = client.post("/api/v1/assistant/respond", json={"drugName": "Biogesic"})
    assert response.status_code == 422


def test_unexpected_fault_is_a_generic_500(client):
    app.dependency_overrides[get_pipeline] = lambda: BrokenPipeline()
    response = client.post("/api/v1/assistant/respond", json={"text": "Biogesic stock"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to compose response"


def test_intent_endpoint(client):
    response = client.post(
        "/api/v1/assistant/intent", json={"text": "do we have Biogesic 500mg in stock?"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["intent"] == "stock_check"
    assert body["drugName"] == "Biogesic 500 mg"
    assert body["needs"] == ["stock"]
    assert body["sources"] == ["internal_db"]


def test_intent_endpoint_rejects_blank_text(client):
    response = client.post("/api/v1/assistant/intent", json={"text": "   "})
    assert response.status_code == 400

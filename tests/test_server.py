"""Tests for hippodrome/server.py using FastAPI's TestClient."""

import json

import pytest
from fastapi.testclient import TestClient

from hippodrome.server import create_app
from tests.conftest import default_responder, make_gateway

_YES = "Consensus reached: YES\nFinal consensus: Both have their place."

_BODY = {
    "topic": "YAML or JSON?",
    "participants": [{"identifier": "vendor/alpha-one"}, {"identifier": "vendor/beta-two"}],
}


@pytest.fixture
def built_gateways() -> list:
    return []


@pytest.fixture
def client(sample_app_config, built_gateways, monkeypatch) -> TestClient:
    monkeypatch.delenv(sample_app_config.gateway.api_key_env, raising=False)

    def factory(request):
        built_gateways.append(request.credential)
        gateway, _ = make_gateway(sample_app_config.gateway, default_responder(judge_reply=_YES))
        return gateway

    return TestClient(create_app(sample_app_config, gateway_factory=factory))


def _lines(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_debate_streams_ndjson_until_final(client):
    response = client.post("/api/debate", json=_BODY, headers={"x-openrouter-key": "sk-header"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    assert response.headers["cache-control"] == "no-cache"

    messages = _lines(response)
    assert len(messages) > 1
    last = messages[-1]
    assert last["isFinalUpdate"] is True
    assert last["consensusReached"] is True
    assert last["finalAnswer"] == "Both have their place."
    assert last["totalSelectedModels"] == 2
    assert all("isFinalUpdate" not in m for m in messages[:-1])
    assert set(last["initialResponses"]) == {"Alpha One", "Beta Two"}


def test_every_message_is_full_state(client):
    response = client.post("/api/debate", json=_BODY, headers={"x-openrouter-key": "sk-header"})
    for message in _lines(response):
        assert {"initialResponses", "streamingResponses", "debates", "finalAnswer",
                "consensusReached", "totalSelectedModels"} <= set(message)


def test_credential_from_body_wins(client, built_gateways):
    client.post(
        "/api/debate",
        json={**_BODY, "credential": "sk-body"},
        headers={"x-openrouter-key": "sk-header"},
    )
    assert built_gateways == ["sk-body"]


def test_credential_from_environment(client, built_gateways, sample_app_config, monkeypatch):
    monkeypatch.setenv(sample_app_config.gateway.api_key_env, "sk-env")
    response = client.post("/api/debate", json=_BODY)
    assert response.status_code == 200
    assert built_gateways == ["sk-env"]


def test_missing_credential_is_400(client, built_gateways):
    response = client.post("/api/debate", json=_BODY)
    assert response.status_code == 400
    assert response.json() == {"error": "OpenRouter API key is required"}
    assert built_gateways == []


def test_too_few_participants_is_400(client, built_gateways):
    body = {"topic": "t", "participants": [{"identifier": "vendor/alpha-one"}]}
    response = client.post("/api/debate", json=body, headers={"x-openrouter-key": "sk"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
    assert built_gateways == []


def test_malformed_json_is_400(client):
    response = client.post(
        "/api/debate",
        content=b"{not json",
        headers={"x-openrouter-key": "sk", "content-type": "application/json"},
    )
    assert response.status_code == 400


def test_colliding_participant_names_is_400(client, built_gateways):
    body = {
        "topic": "t",
        "participants": [{"identifier": "google/gemma-3-27b-it"}, {"identifier": "other/gemma-3-27b-it"}],
    }
    response = client.post("/api/debate", json=body, headers={"x-openrouter-key": "sk"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}
    assert built_gateways == []

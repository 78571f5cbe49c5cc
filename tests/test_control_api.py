"""Tests for the FastAPI control plane."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import person
from quadsync.control_api import create_app
from quadsync.documents import to_document


@pytest.fixture
def client(interceptor, synchronizer, index, registry):
    for item in (person("Alice"), person("Bob")):
        asyncio.run(index.insert(to_document(item)))
    return TestClient(create_app(interceptor, synchronizer, index, registry))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_ready_follows_attachment(client, synchronizer):
    assert client.get("/ready").status_code == 200
    synchronizer.detach()
    assert client.get("/ready").status_code == 503


def test_prometheus_exposition(client):
    response = client.get("/metrics/prometheus")
    assert response.status_code == 200
    assert "quadsync_index_inserts_total" in response.text
    assert "quadsync_sync_state_entries" in response.text


def test_sync_status(client):
    body = client.get("/sync/status").json()
    assert body["attached"] is True
    assert body["state_entries"] == 0
    assert body["pending_tasks"] == 0
    assert body["config"] == {
        "fallback": "where",
        "fallback_search_limit": 100,
        "max_concurrency": None,
    }


def test_settle_without_pending_work(client):
    response = client.post("/sync/settle")
    assert response.status_code == 200
    assert response.json() == {"reports": [], "task_errors": []}


def test_facts_search(client):
    response = client.get("/facts/search", params={"q": "alice"})
    assert response.status_code == 200
    assert response.json() == [
        {
            "subject": "http://example.org/alice",
            "predicate": "http://xmlns.com/foaf/0.1/name",
            "object": "Alice",
            "graph": "",
        }
    ]


def test_facts_search_limit(client):
    body = client.get("/facts/search", params={"q": "name", "limit": 1}).json()
    assert len(body) == 1


@pytest.mark.parametrize("params", [{}, {"q": ""}, {"q": "alice", "limit": 0}])
def test_facts_search_validation(client, params):
    assert client.get("/facts/search", params=params).status_code == 422

"""Tests for the structured error envelope."""
from sqlalchemy.exc import OperationalError

from conftest import RECIPE
from src.db.repository import ContentRepository


async def test_not_found_envelope(client):
    resp = await client.get("/api/v1/content/missing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "message": "Content not found"}


async def test_request_validation_envelope(client, author):
    resp = await client.get("/api/v1/content?limit=0")
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["message"] == "Invalid request data"
    assert body["details"][0]["field"].endswith("limit")


async def test_unauthenticated_envelope(client):
    resp = await client.get("/api/v1/content/mine")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Authentication required"


async def test_store_failure_becomes_persistence_error(client, author, monkeypatch):
    async def failing_add(self, author_id, payload):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(ContentRepository, "add", failing_add)
    resp = await client.post("/api/v1/recipes", headers=author["headers"], json=RECIPE)
    assert resp.status_code == 503
    assert resp.json()["error"] == "persistence_error"

    # Nothing was written
    monkeypatch.undo()
    resp = await client.get("/api/v1/content/mine", headers=author["headers"])
    assert resp.json()["items"] == []


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["db"] == "connected"

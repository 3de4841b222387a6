"""Tests for request ID tracing middleware and log tagging."""
import logging

from src.logging_config import JSONFormatter, RequestIDFilter
from src.middleware.request_id import request_id_var


async def test_response_includes_request_id(client):
    """Every response should have X-Request-ID header."""
    resp = await client.get("/health")
    assert "x-request-id" in resp.headers
    assert len(resp.headers["x-request-id"]) == 36  # UUID format


async def test_client_request_id_honored(client):
    custom_id = "my-trace-12345"
    resp = await client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers["x-request-id"] == custom_id


async def test_unique_ids_per_request(client):
    r1 = await client.get("/health")
    r2 = await client.get("/health")
    assert r1.headers["x-request-id"] != r2.headers["x-request-id"]


async def test_error_responses_carry_request_id(client):
    resp = await client.get("/api/v1/content/missing", headers={"X-Request-ID": "trace-404"})
    assert resp.status_code == 404
    assert resp.headers["x-request-id"] == "trace-404"


def test_log_records_tagged_with_request_id():
    token = request_id_var.set("req-42")
    try:
        record = logging.LogRecord("src.test", logging.INFO, __file__, 1, "approved %s", ("item-1",), None)
        RequestIDFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-42"
    line = JSONFormatter().format(record)
    assert '"request_id": "req-42"' in line
    assert '"message": "approved item-1"' in line


def test_log_records_outside_requests_get_placeholder():
    record = logging.LogRecord("src.test", logging.INFO, __file__, 1, "startup", (), None)
    RequestIDFilter().filter(record)
    assert record.request_id == "-"

# ./guard/pipeline/tests/test_shape.py
"""
Tests for request shape validation.
"""

import json

import pytest
from fastapi.testclient import TestClient

from guard.pipeline import ExceptionBoundary, InspectionPipeline, RequestShapeValidator
from guard.pipeline.shape import is_json_content_type

from .support import http_scope, make_app, run_asgi


@pytest.fixture
def client():
    app = make_app([ExceptionBoundary(), RequestShapeValidator(max_body_bytes=64)])
    return TestClient(app)


async def never_called(scope, receive, send):
    raise AssertionError("downstream app must not run")


class TestBodySize:
    """Test the body size ceiling."""

    def test_declared_length_over_limit(self, client):
        response = client.post("/echo", content=b"x" * 128, headers={"Content-Type": "text/plain"})

        assert response.status_code == 413
        assert response.json() == {"detail": "Request too large"}
        assert client.app.state.calls == 0

    def test_body_at_limit_passes(self, client):
        response = client.post("/echo", content=b"x" * 64, headers={"Content-Type": "text/plain"})

        assert response.status_code == 200
        assert response.content == b"x" * 64

    @pytest.mark.asyncio
    async def test_streamed_body_without_length(self):
        """A body sent without Content-Length is still capped while buffering."""
        pipeline = InspectionPipeline(never_called, [ExceptionBoundary(), RequestShapeValidator(max_body_bytes=16)])
        scope = http_scope("POST", "/echo", headers=[("content-type", "text/plain")])

        sent = await run_asgi(pipeline, scope, [
            {"type": "http.request", "body": b"a" * 12, "more_body": True},
            {"type": "http.request", "body": b"b" * 12, "more_body": False},
        ])

        assert sent[0]["status"] == 413
        assert json.loads(sent[1]["body"]) == {"detail": "Request too large"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("declared", ["twelve", "-5"])
    async def test_invalid_declared_length(self, declared):
        pipeline = InspectionPipeline(never_called, [ExceptionBoundary(), RequestShapeValidator()])
        scope = http_scope("POST", "/echo", headers=[("content-length", declared)])

        sent = await run_asgi(pipeline, scope, [{"type": "http.request", "body": b"", "more_body": False}])

        assert sent[0]["status"] == 400
        assert json.loads(sent[1]["body"]) == {"detail": "Invalid request"}


class TestJsonBody:
    """Test JSON well-formedness checks."""

    def test_invalid_json(self, client):
        response = client.post("/echo", content=b'{"name": ', headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid JSON format"}
        assert client.app.state.calls == 0

    def test_deeply_nested_json(self):
        """Nesting past the parser's recursion limit is malformed input, not a server fault."""
        client = TestClient(make_app([ExceptionBoundary(), RequestShapeValidator(max_body_bytes=1024 * 1024)]))

        response = client.post("/echo", content=b"[" * 200_000, headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid JSON format"}
        assert client.app.state.calls == 0

    def test_empty_json_body_passes(self, client):
        response = client.post("/echo", content=b"", headers={"Content-Type": "application/json"})

        assert response.status_code == 200

    def test_structured_suffix_is_checked(self, client):
        response = client.post("/echo", content=b"{broken", headers={"Content-Type": "application/problem+json"})

        assert response.status_code == 400

    def test_other_content_types_are_not_parsed(self, client):
        response = client.post("/echo", content=b"{broken", headers={"Content-Type": "text/plain"})

        assert response.status_code == 200
        assert response.content == b"{broken"

    def test_get_body_is_ignored(self, client):
        response = client.get("/ok")

        assert response.status_code == 200

    @pytest.mark.parametrize("content_type,expected", [
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("application/vnd.api+json", True),
        ("text/json-ish", False),
        ("", False),
    ])
    def test_is_json_content_type(self, content_type, expected):
        assert is_json_content_type(content_type) is expected


class TestForwardingHeaders:
    """Test inspection of proxy forwarding headers."""

    def test_script_in_forwarded_for(self, client, caplog):
        response = client.get("/ok", headers={"X-Forwarded-For": "<script>alert(1)</script>"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid request"}
        assert "script" not in response.text
        assert "SUSPICIOUS_HEADER header=x-forwarded-for" in caplog.text

    def test_scheme_in_forwarded_host(self, client):
        response = client.get("/ok", headers={"X-Forwarded-Host": "file:///etc/passwd"})

        assert response.status_code == 400

    def test_benign_ip_list_passes(self, client):
        response = client.get("/ok", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "203.0.113.7"})

        assert response.status_code == 200

# ./guard/pipeline/tests/test_runner.py
"""
Tests for the inspection pipeline runner.

These cover stage ordering, short-circuiting, header application on every
kind of response, body replay and the exception boundary.
"""

import logging

import pytest
from fastapi.testclient import TestClient
from starlette.responses import PlainTextResponse

from guard.pipeline import (
    SECURITY_HEADERS,
    ExceptionBoundary,
    InspectionPipeline,
    Inspector,
    MalformedInput,
    RateExceeded,
    RequestShapeValidator,
    SecurityHeaderInjector,
    SqlInjectionInspector,
    XssInspector,
)

from .support import http_scope, make_app, run_asgi


class Recorder(Inspector):
    """Inspector that records its call and optionally ends the run."""

    def __init__(self, name, calls, response=None, exc=None):
        self.name = name
        self.calls = calls
        self.response = response
        self.exc = exc

    async def inspect(self, ctx):
        self.calls.append(self.name)
        if self.exc is not None:
            raise self.exc
        return self.response


def assert_security_headers(response):
    for name, value in SECURITY_HEADERS.items():
        assert response.headers[name] == value


class TestPassThrough:
    """Test requests that reach the downstream app."""

    def test_security_headers_on_downstream_response(self):
        client = TestClient(make_app([ExceptionBoundary(), SecurityHeaderInjector()]))

        response = client.get("/ok")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert_security_headers(response)

    def test_body_is_replayed_unchanged(self):
        """Inspected bodies reach the handler byte for byte."""
        app = make_app([
            ExceptionBoundary(),
            SecurityHeaderInjector(),
            RequestShapeValidator(),
            XssInspector(),
            SqlInjectionInspector(),
        ])
        client = TestClient(app)
        payload = b'{"name": "Laptop bag", "price": 12.5}'

        response = client.post("/echo", content=payload, headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.content == payload
        assert app.state.calls == 1

    def test_benign_request_is_idempotent(self):
        client = TestClient(make_app([ExceptionBoundary(), SecurityHeaderInjector(), XssInspector()]))

        first = client.get("/ok?page=2")
        second = client.get("/ok?page=2")

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()


class TestShortCircuit:
    """Test terminal outcomes from inspectors."""

    def test_stops_at_first_rejection(self):
        calls = []
        app = make_app([
            Recorder("first", calls),
            Recorder("second", calls, exc=RateExceeded(5)),
            Recorder("third", calls),
        ])
        client = TestClient(app)

        response = client.get("/ok")

        assert response.status_code == 429
        assert response.json() == {"detail": "Too many requests"}
        assert response.headers["Retry-After"] == "5"
        assert calls == ["first", "second"]
        assert app.state.calls == 0

    def test_rejection_gets_security_headers(self):
        calls = []
        client = TestClient(make_app([
            ExceptionBoundary(),
            SecurityHeaderInjector(),
            Recorder("reject", calls, exc=MalformedInput(reason="internal detail")),
        ]))

        response = client.get("/ok")

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid request"}
        assert "internal detail" not in response.text
        assert_security_headers(response)

    def test_returned_response_is_terminal(self):
        calls = []
        app = make_app([
            SecurityHeaderInjector(),
            Recorder("teapot", calls, response=PlainTextResponse("short and stout", status_code=418)),
        ])
        client = TestClient(app)

        response = client.get("/ok")

        assert response.status_code == 418
        assert response.text == "short and stout"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert app.state.calls == 0


class TestExceptionBoundary:
    """Test that unexpected failures become a generic 500."""

    def test_inspector_failure(self):
        calls = []
        client = TestClient(make_app([
            ExceptionBoundary(),
            SecurityHeaderInjector(),
            Recorder("broken", calls, exc=RuntimeError("secret detail")),
        ]))

        response = client.get("/ok")

        assert response.status_code == 500
        assert response.json() == {"detail": "An internal error occurred"}
        assert "secret detail" not in response.text
        assert_security_headers(response)

    def test_downstream_failure(self, caplog):
        client = TestClient(make_app([ExceptionBoundary(), SecurityHeaderInjector()]))

        with caplog.at_level(logging.ERROR):
            response = client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"detail": "An internal error occurred"}
        assert "hunter2" not in response.text
        assert "UNHANDLED_EXCEPTION" in caplog.text
        assert_security_headers(response)

    def test_fallback_without_boundary(self):
        client = TestClient(make_app([SecurityHeaderInjector()]))

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"detail": "An internal error occurred"}


class TestRequestLogging:
    def test_client_error_is_logged(self, caplog):
        calls = []
        client = TestClient(make_app([Recorder("reject", calls, exc=MalformedInput())]))

        with caplog.at_level(logging.DEBUG, logger="app.requests"):
            client.get("/ok")

        assert "CLIENT_ERROR status=400 method=GET path=/ok" in caplog.text


class TestAsgiBehaviour:
    """Test the runner directly at the ASGI level."""

    @pytest.mark.asyncio
    async def test_client_disconnect_ends_run_silently(self):
        called = []

        async def downstream(scope, receive, send):
            called.append(scope["path"])

        pipeline = InspectionPipeline(downstream, [ExceptionBoundary(), RequestShapeValidator()])
        scope = http_scope("POST", "/echo", headers=[("content-type", "application/json")])

        sent = await run_asgi(pipeline, scope, [
            {"type": "http.request", "body": b'{"partial', "more_body": True},
            {"type": "http.disconnect"},
        ])

        assert sent == []
        assert called == []

    @pytest.mark.asyncio
    async def test_non_http_scope_passes_through(self):
        seen = []

        async def downstream(scope, receive, send):
            seen.append(scope["type"])

        pipeline = InspectionPipeline(downstream, [ExceptionBoundary()])
        await pipeline({"type": "lifespan"}, None, None)

        assert seen == ["lifespan"]

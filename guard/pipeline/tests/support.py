"""Shared helpers for pipeline tests."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from guard.pipeline import InspectionPipeline

TEST_SECRET = "a0b1c2d3e4f5a6b7c8d9e0f1a2b3c4d5a6b7c8d9e0f1a2b3c4d5a6b7c8d9e0f1"
TEST_ISSUER = "SecureApiVAPT"
TEST_AUDIENCE = "SecureApiVAPTUsers"


def make_app(inspectors) -> FastAPI:
    """Small downstream app wrapped in the pipeline, counting the requests it serves."""
    app = FastAPI()
    app.state.calls = 0

    @app.get("/ok")
    async def ok(request: Request):
        request.app.state.calls += 1
        return {"status": "ok"}

    @app.api_route("/echo", methods=["POST", "PUT", "PATCH", "GET"])
    async def echo(request: Request):
        request.app.state.calls += 1
        body = await request.body()
        return Response(body, media_type=request.headers.get("content-type", "application/octet-stream"))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    @app.get("/whoami")
    async def whoami(request: Request):
        identity = getattr(request.state, "identity", None)
        return JSONResponse({"subject": identity.subject_id if identity else None})

    app.add_middleware(InspectionPipeline, inspectors=inspectors)
    return app


def http_scope(method="GET", path="/ok", headers=None, query_string=b"", scheme="http"):
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": query_string,
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or [])],
        "client": ("10.0.0.1", 50000),
        "server": ("testserver", 80),
    }


async def run_asgi(app, scope, messages):
    """Drive an ASGI app with a fixed sequence of receive messages and collect what it sends."""
    inbox = list(messages)
    sent = []

    async def receive():
        if inbox:
            return inbox.pop(0)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    await app(scope, receive, send)
    return sent



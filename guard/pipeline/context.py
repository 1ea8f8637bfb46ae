"""Per-request inspection state shared by every stage of one pipeline run."""

from __future__ import annotations

import time
from typing import Any, Optional

from starlette.datastructures import Headers
from starlette.types import Message, Receive, Scope

from guard.identity import Identity

from .errors import PayloadTooLarge

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class ClientDisconnected(Exception):
    """The client went away while its body was still being buffered."""


class InspectionContext:
    """
    One inspection run.

    The body is buffered at most once, with a size cap, and replayed to the
    downstream application so business logic reads the same bytes the
    inspectors saw. ``response_headers`` collects headers that earlier
    stages want on whatever response ends the run.
    """

    def __init__(self, scope: Scope, receive: Receive):
        self.scope = scope
        self._receive = receive
        self._body: Optional[bytes] = None
        self.headers = Headers(scope=scope)
        self.response_headers: dict[str, str] = {}
        self.started_at = time.monotonic()
        self.status_code: Optional[int] = None
        self.response_started = False

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        return self.scope.get("path", "")

    @property
    def scheme(self) -> str:
        return self.scope.get("scheme", "http")

    @property
    def query_string(self) -> str:
        return (self.scope.get("query_string") or b"").decode("latin-1")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").lower()

    @property
    def client_host(self) -> str:
        client = self.scope.get("client")
        if client and client[0]:
            return client[0]
        return "unknown"

    @property
    def has_body_method(self) -> bool:
        return self.method in BODY_METHODS

    @property
    def state(self) -> dict[str, Any]:
        return self.scope.setdefault("state", {})

    @property
    def identity(self) -> Optional[Identity]:
        return self.state.get("identity")

    @identity.setter
    def identity(self, value: Optional[Identity]) -> None:
        self.state["identity"] = value

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000

    async def read_body(self, limit: Optional[int] = None) -> bytes:
        """
        Buffer the request body once.

        Raises:
            PayloadTooLarge: If more than ``limit`` bytes arrive
            ClientDisconnected: If the client disconnects mid-body
        """
        if self._body is not None:
            return self._body

        buffer = bytearray()
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                buffer.clear()
                raise ClientDisconnected()

            chunk = message.get("body", b"")
            if chunk:
                buffer.extend(chunk)
                if limit is not None and len(buffer) > limit:
                    buffer.clear()
                    raise PayloadTooLarge(reason=f"streamed body exceeded {limit} bytes")

            if not message.get("more_body", False):
                break

        self._body = bytes(buffer)
        return self._body

    def release_body(self) -> None:
        self._body = None

    def replay_receive(self) -> Receive:
        """Receive callable for the downstream app, serving the buffered body first."""
        if self._body is None:
            return self._receive

        body = self._body
        replayed = False

        async def receive() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await self._receive()

        return receive

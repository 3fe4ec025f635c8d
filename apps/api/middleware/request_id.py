from __future__ import annotations

import os
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

ASGISend = Callable[[dict[str, Any]], Awaitable[None]]
ASGIReceive = Callable[[], Awaitable[dict[str, Any]]]
ASGIApp = Callable[[dict[str, Any], ASGIReceive, ASGISend], Awaitable[None]]

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIDMiddleware:
    """Attach a request ID and structured logging context to each HTTP request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app
        self.header_name = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
        self._header_bytes = self.header_name.lower().encode("latin-1")
        self.log = structlog.get_logger("bookstall.request")

    async def __call__(self, scope: dict[str, Any], receive: ASGIReceive, send: ASGISend) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        incoming = self._find_header(scope.get("headers", []))
        request_id = incoming if incoming and _VALID_REQUEST_ID.match(incoming) else uuid.uuid4().hex
        client = scope.get("client") or (None, None)
        state = scope.setdefault("state", {})
        state["request_id"] = request_id

        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
            client=client[0],
            status=None,
            latency_ms=None,
        )

        start_time = time.perf_counter()
        status_code: int | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = list(message.get("headers", []))
                if not self._header_present(headers):
                    headers.append(
                        (self.header_name.encode("latin-1"), request_id.encode("latin-1"))
                    )
                message["headers"] = headers
                bind_contextvars(status=status_code)
            elif message["type"] == "http.response.body" and not message.get("more_body", False):
                latency = (time.perf_counter() - start_time) * 1000
                bind_contextvars(latency_ms=round(latency, 3))
                self.log.info("http.request")

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            latency = (time.perf_counter() - start_time) * 1000
            bind_contextvars(status=status_code or 500, latency_ms=round(latency, 3))
            self.log.exception("http.request.error")
            raise
        finally:
            clear_contextvars()

    def _find_header(self, headers: list[tuple[bytes, bytes]]) -> str | None:
        for key, value in headers:
            if key.lower() == self._header_bytes:
                return value.decode("latin-1")
        return None

    def _header_present(self, headers: list[tuple[bytes, bytes]]) -> bool:
        return any(key.lower() == self._header_bytes for key, _ in headers)

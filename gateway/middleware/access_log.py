from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from gateway.security.graylist import remote_address
from gateway.telemetry.metrics import record_response

RequestHandler = Callable[[Request], Awaitable[Response]]

access_log = logging.getLogger("gateway.access")

# Never written to the access log, even when header capture is on.
_REDACTED_HEADERS = frozenset({"authorization", "cookie", "proxy-authorization"})


def _captured_headers(request: Request) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for key, value in request.headers.items():
        out[key] = "[redacted]" if key.lower() in _REDACTED_HEADERS else value
    return out


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request; headers/remote address are opt-in captures."""

    def __init__(self, app: ASGIApp, *, headers_p: bool = True, remote_p: bool = True) -> None:
        super().__init__(app)
        self._headers_p = headers_p
        self._remote_p = remote_p

    async def dispatch(self, request: Request, call_next: RequestHandler) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        dur_ms = (time.perf_counter() - start) * 1000

        fields: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(dur_ms, 2),
        }
        if self._headers_p:
            fields["headers"] = _captured_headers(request)
        if self._remote_p:
            fields["remote_address"] = remote_address(request)

        record_response(request.method, response.status_code)
        access_log.info("request completed", extra=fields)
        return response

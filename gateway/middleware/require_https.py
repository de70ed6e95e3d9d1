# gateway/middleware/require_https.py
# Production-only redirect of plain-HTTP requests to HTTPS.
# - proxy=True: trust X-Forwarded-Proto from the TLS-terminating proxy and
#   redirect only when it says "http" (requests without the header pass).
# - proxy=False: redirect whenever the connection scheme itself is http.

from __future__ import annotations

from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

RequestHandler = Callable[[Request], Awaitable[Response]]


class RequireHTTPSMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, proxy: bool = True) -> None:
        super().__init__(app)
        self._proxy = proxy

    def _is_plain_http(self, request: Request) -> bool:
        if self._proxy:
            proto = request.headers.get("x-forwarded-proto", "")
            return proto.split(",")[0].strip().lower() == "http"
        return request.url.scheme == "http"

    async def dispatch(self, request: Request, call_next: RequestHandler) -> Response:
        if not self._is_plain_http(request):
            return await call_next(request)
        host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
        target = request.url.replace(scheme="https", netloc=host)
        return RedirectResponse(str(target), status_code=301)


def install_require_https(app, *, proxy: bool = True) -> None:
    app.add_middleware(RequireHTTPSMiddleware, proxy=proxy)

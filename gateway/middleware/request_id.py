# gateway/middleware/request_id.py
# Per-request correlation id for log lines and responses.
# - An inbound X-Request-ID is reused when it is 1-128 chars of [A-Za-z0-9._:-].
# - Anything else (missing, blank, oversized, control chars) gets a fresh id.
# - The id is bound to a ContextVar while the request runs and echoed back.

from __future__ import annotations

import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_ACCEPTED = re.compile(r"[A-Za-z0-9._:\-]{1,128}")
_current_id: ContextVar[Optional[str]] = ContextVar("gateway_request_id", default=None)


def get_request_id() -> Optional[str]:
    return _current_id.get()


@contextmanager
def bound_request_id(request_id: str) -> Iterator[str]:
    token = _current_id.set(request_id)
    try:
        yield request_id
    finally:
        _current_id.reset(token)


def choose_request_id(inbound: Optional[str]) -> str:
    candidate = (inbound or "").strip()
    if _ACCEPTED.fullmatch(candidate):
        return candidate
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = choose_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        with bound_request_id(request_id):
            response = await call_next(request)
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response

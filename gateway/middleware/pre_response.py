# gateway/middleware/pre_response.py
# Response interception applied to every outgoing response.
# - Server errors (>= 500) in development: payload carries the original
#   message, the optional error body and the stack; nothing else is touched.
# - Otherwise, unless the response is a 401 error: Cache-Control: private.
# - 401 errors pass through unchanged.
# Errors reach the hook either as unhandled exceptions from downstream or as
# HTTPError instances the exception handlers stash on request.state.

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from gateway.config import DEVELOPMENT
from gateway.errors import HTTPError, error_response

RequestHandler = Callable[[Request], Awaitable[Response]]

log = logging.getLogger(__name__)


def intercept(response: Response, error: Optional[HTTPError], environment: str) -> Response:
    if error is not None and error.is_server_error and environment == DEVELOPMENT:
        return error_response(error, expose=True)

    if error is None or error.status_code != 401:
        headers = getattr(response, "headers", None)
        if headers is not None:
            headers["Cache-Control"] = "private"
    return response


class PreResponseMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, environment: str) -> None:
        super().__init__(app)
        self._environment = environment

    async def dispatch(self, request: Request, call_next: RequestHandler) -> Response:
        request.state.error = None
        try:
            response = await call_next(request)
        except Exception as exc:
            log.exception("unhandled error on %s %s", request.method, request.url.path)
            error = HTTPError.wrap(exc)
            response = error_response(error)
        else:
            error = getattr(request.state, "error", None)
        return intercept(response, error, self._environment)


async def _handle_http_error(request: Request, exc: Exception) -> Response:
    error = HTTPError.wrap(exc)
    request.state.error = error
    if error.is_server_error:
        log.error("server error %d: %s", error.status_code, error.message)
    return error_response(error)


async def _handle_validation_error(request: Request, exc: Exception) -> Response:
    details = exc.errors() if isinstance(exc, RequestValidationError) else []
    message = "; ".join(
        f"{'.'.join(str(p) for p in item.get('loc', ()))}: {item.get('msg', '')}" for item in details
    )
    error = HTTPError(400, message or "Invalid request input")
    request.state.error = error
    return error_response(error)


def install_response_hook(app: FastAPI, *, environment: str) -> None:
    app.add_exception_handler(HTTPError, _handle_http_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_middleware(PreResponseMiddleware, environment=environment)

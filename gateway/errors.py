# gateway/errors.py
from __future__ import annotations

import traceback
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

GENERIC_SERVER_MESSAGE = "An internal server error occurred"


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


class StartupError(RuntimeError):
    """Fatal bootstrap failure; ``step`` names the startup step that failed."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step


class HTTPError(Exception):
    """
    Uniform HTTP error carried through the response pipeline.

    ``message`` is always kept on the instance; for server errors it is only
    written to the payload when details are exposed (development mode).
    ``body`` is optional extra context (e.g. an upstream response body).
    """

    def __init__(
        self,
        status_code: int = 500,
        message: Optional[str] = None,
        *,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.status_code = int(status_code)
        self.message = message or _reason(self.status_code)
        self.body = body
        self.headers: Dict[str, str] = dict(headers or {})
        self.original: Optional[BaseException] = None
        super().__init__(self.message)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    @classmethod
    def wrap(cls, exc: BaseException) -> "HTTPError":
        if isinstance(exc, HTTPError):
            return exc
        if isinstance(exc, StarletteHTTPException):
            return cls(exc.status_code, str(exc.detail), headers=exc.headers)
        err = cls(500, str(exc) or type(exc).__name__, body=getattr(exc, "body", None))
        err.original = exc
        return err

    def payload(self) -> Dict[str, Any]:
        message = GENERIC_SERVER_MESSAGE if self.is_server_error else self.message
        return {
            "statusCode": self.status_code,
            "error": _reason(self.status_code),
            "message": message,
        }

    def stack(self) -> str:
        exc: BaseException = self.original or self
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def unauthorized(message: Optional[str] = None, scheme: str = "Bearer") -> HTTPError:
    challenge = scheme if not message else f'{scheme} error="{message}"'
    return HTTPError(401, message or "Missing authentication", headers={"WWW-Authenticate": challenge})


def error_response(err: HTTPError, *, expose: bool = False) -> JSONResponse:
    payload = err.payload()
    if expose:
        payload["message"] = err.message
        if err.body is not None:
            payload["body"] = jsonable_encoder(err.body)
        payload["stack"] = err.stack()
    return JSONResponse(payload, status_code=err.status_code, headers=err.headers or None)

# gateway/telemetry/logging.py
# Process logging setup.
# JSON lines carry: ts, level, logger, message, request_id while a request is
# in flight, the static fields given at setup (e.g. environment) and whatever
# a call site passes as ``extra``. Text mode is for local runs.

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, TextIO

from gateway.middleware.request_id import get_request_id

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
    "color_message",
}

# uvicorn's own per-request lines duplicate the access log middleware.
_QUIET_LOGGERS = ("uvicorn.access",)


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class JsonFormatter(logging.Formatter):
    def __init__(self, static_fields: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__()
        self._static = {k: v for k, v in (static_fields or {}).items() if v is not None}

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        line: Dict[str, Any] = {
            "ts": _default(created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            line["request_id"] = request_id
        line.update(self._static)
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key == "request_id" or key.startswith("_"):
                continue
            line[key] = value
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, default=_default, ensure_ascii=False)


class _GatewayHandler(logging.StreamHandler):
    """Marker type so a repeated setup replaces only its own handler."""


def configure_logging(
    level: int | str = "INFO",
    *,
    json_lines: bool = True,
    static_fields: Optional[Mapping[str, Any]] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    root = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)

    for existing in [h for h in root.handlers if isinstance(h, _GatewayHandler)]:
        root.removeHandler(existing)

    handler = _GatewayHandler(stream or sys.stdout)
    handler.setFormatter(
        JsonFormatter(static_fields) if json_lines else logging.Formatter(TEXT_FORMAT)
    )
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler

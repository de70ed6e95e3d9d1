from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Dict, List, Optional

from gateway.config import Runtime, Settings
from gateway.errors import StartupError
from gateway.main import create_server
from gateway.serve import serve
from gateway.telemetry.logging import configure_logging

log = logging.getLogger("gateway.cli")


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.host:
        out["host"] = args.host
    if args.port is not None:
        out["port"] = args.port
    if args.env:
        out["node_env"] = args.env
    if args.login:
        out["login_enabled"] = True
    return out


async def _run(settings: Settings) -> None:
    runtime = Runtime(login=settings.login_enabled)
    app = await create_server(runtime, settings=settings)
    await serve(app, settings, runtime)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="admission-gateway")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--env", help="overrides NODE_ENV")
    parser.add_argument("--login", action="store_true", help="enable session/github strategies")
    args = parser.parse_args(argv)

    settings = Settings(**_overrides(args))
    configure_logging(
        settings.log_level,
        json_lines=settings.log_json,
        static_fields={"environment": settings.node_env or None},
    )

    try:
        asyncio.run(_run(settings))
    except StartupError as exc:
        log.critical("startup failed", extra={"step": exc.step, "error": str(exc)})
        return 1
    except KeyboardInterrupt:  # pragma: no cover
        return 0
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

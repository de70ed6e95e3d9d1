# gateway/main.py
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from fastapi import FastAPI
from fastapi.routing import APIRouter

from gateway import __version__
from gateway.config import Runtime, ServerOptions, Settings, get_settings, resolve_options
from gateway.errors import StartupError
from gateway.middleware.access_log import AccessLogMiddleware
from gateway.middleware.pre_response import install_response_hook
from gateway.middleware.request_id import RequestIDMiddleware
from gateway.middleware.require_https import install_require_https
from gateway.security.graylist import Graylist
from gateway.security.strategies import (
    StrategyRegistry,
    WhitelistStrategy,
    register_login_strategies,
    register_simple_strategy,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    name: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_step(name: str, fn: Callable[[], Any]) -> StepResult:
    """Run one startup step; failures come back as a result, never raised."""
    try:
        value = fn()
        if inspect.isawaitable(value):
            value = await value
    except Exception as exc:
        return StepResult(name=name, error=exc)
    log.debug("startup step %s done", name)
    return StepResult(name=name, value=value)


def require(result: StepResult) -> Any:
    """Treat a failed step as fatal."""
    if result.error is not None:
        log.critical("startup step %s failed: %s", result.name, result.error)
        raise StartupError(result.name, str(result.error)) from result.error
    return result.value


def _register_plugins(app: FastAPI, graylist: Optional[Graylist]) -> StrategyRegistry:
    # Async handlers are native; the bearer scheme and whitelist live in the registry.
    registry = StrategyRegistry()
    registry.register(WhitelistStrategy(graylist))
    app.state.auth = registry
    return registry


def _as_routers(table: Any) -> List[APIRouter]:
    if isinstance(table, APIRouter):
        return [table]
    if isinstance(table, Iterable):
        routers = list(table)
        for item in routers:
            if not isinstance(item, APIRouter):
                raise TypeError(f"route provider returned {type(item).__name__}, expected APIRouter")
        return routers
    raise TypeError(f"route provider returned {type(table).__name__}, expected APIRouter(s)")


async def _attach_routes(app: FastAPI, runtime: Runtime, options: ServerOptions) -> int:
    provider = options.routes
    if provider is None or not callable(getattr(provider, "routes", None)):
        raise TypeError("route provider must expose routes(runtime, options)")
    routers = _as_routers(await provider.routes(runtime, options))
    for router in routers:
        app.include_router(router)
    return len(routers)


async def create_server(
    runtime: Optional[Runtime] = None,
    options: Optional[ServerOptions] = None,
    *,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Assemble the application in a fixed order, failing fast:

    defaults -> graylist -> plugins -> https (production, non-fatal)
    -> login strategies (never in production) -> simple strategy
    -> response hook -> instrumentation -> routes

    Listening is handled separately by :func:`gateway.serve.serve`.
    """
    settings = settings or get_settings()
    runtime = runtime or Runtime(login=settings.login_enabled)

    app = FastAPI(
        title="Admission Gateway",
        description="HTTP server with bearer-token and IP allow-list admission.",
        version=__version__,
    )
    app.state.settings = settings
    app.state.runtime = runtime

    options = require(await run_step("defaults", lambda: resolve_options(options, settings)))
    app.state.options = options

    graylist = require(await run_step("graylist", lambda: Graylist.from_csv(settings.ip_graylist)))
    app.state.graylist = graylist

    registry = require(await run_step("plugins", lambda: _register_plugins(app, graylist)))

    if settings.is_production:
        https = await run_step(
            "https",
            lambda: install_require_https(app, proxy=settings.https_proxy_aware),
        )
        if not https.ok:
            log.error("HTTPS enforcement unavailable: %s", https.error)

    if runtime.login:
        require(await run_step("login", lambda: register_login_strategies(registry, settings)))

    require(await run_step("simple", lambda: register_simple_strategy(registry, settings)))

    require(
        await run_step(
            "response-hook",
            lambda: install_response_hook(app, environment=settings.node_env),
        )
    )

    def _instrument() -> None:
        app.add_middleware(AccessLogMiddleware, headers_p=options.headers_p, remote_p=options.remote_p)
        app.add_middleware(RequestIDMiddleware)

    require(await run_step("instrumentation", _instrument))

    count = require(await run_step("routes", lambda: _attach_routes(app, runtime, options)))

    log.info(
        "server assembled",
        extra={
            "server_id": options.id,
            "environment": settings.node_env or None,
            "strategies": registry.names(),
            "routers": count,
        },
    )
    return app

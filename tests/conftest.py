# tests/conftest.py
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gateway.config import Runtime, ServerOptions, Settings  # noqa: E402
from gateway.main import create_server  # noqa: E402

_ENV_KEYS = (
    "PORT",
    "HOST",
    "NODE_ENV",
    "ENVIRONMENT",
    "IP_GRAYLIST",
    "TOKEN_LIST",
    "SERVER_ID",
    "LOGIN_ENABLED",
    "HTTPS_PROXY_AWARE",
    "DNS_RESOLVERS_PREFERRED",
    "NOTIFY_SOCKET",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Settings are injected per test; ambient env must not leak in.
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture()
def build_app(make_settings) -> Callable[..., FastAPI]:
    def _build(
        runtime: Optional[Runtime] = None,
        options: Optional[ServerOptions] = None,
        **overrides: Any,
    ) -> FastAPI:
        settings = make_settings(**overrides)
        return asyncio.run(create_server(runtime, options, settings=settings))

    return _build


@pytest.fixture()
def client_for(build_app) -> Callable[..., TestClient]:
    def _client(
        runtime: Optional[Runtime] = None,
        options: Optional[ServerOptions] = None,
        **overrides: Any,
    ) -> TestClient:
        return TestClient(build_app(runtime, options, **overrides))

    return _client


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Minimal asyncio support without requiring pytest-asyncio."""

    test_func = pyfuncitem.obj
    if asyncio.iscoroutinefunction(test_func):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            call_kwargs = {
                name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
            }
            loop.run_until_complete(test_func(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None

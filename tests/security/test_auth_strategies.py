# tests/security/test_auth_strategies.py
# Bearer-token and whitelist strategies, directly and through the assembled app.

from __future__ import annotations

from typing import List

import pytest
from fastapi import APIRouter, Depends
from starlette.requests import Request

from gateway.config import Runtime, ServerOptions, Settings
from gateway.security.strategies import (
    BearerTokenStrategy,
    LOGIN_SCOPE,
    Principal,
    StrategyRegistry,
    WhitelistStrategy,
    require_auth,
)


class _Provider:
    def __init__(self, *routers: APIRouter) -> None:
        self._routers = list(routers)

    async def routes(self, runtime: Runtime, options: ServerOptions) -> List[APIRouter]:
        return self._routers


def _scoped_router() -> APIRouter:
    router = APIRouter()

    @router.get("/ledger")
    async def ledger(p: Principal = Depends(require_auth("simple", scope=["ledger"]))) -> dict:
        return {"ok": True}

    @router.get("/mystery")
    async def mystery(p: Principal = Depends(require_auth("nope"))) -> dict:
        return {"ok": True}

    return router


def test_missing_token_is_unauthorized(client_for) -> None:
    r = client_for(token_list="abc,def").get("/v1/ping")
    assert r.status_code == 401
    assert r.headers["www-authenticate"].startswith("Bearer")
    body = r.json()
    assert body["statusCode"] == 401
    assert body["error"] == "Unauthorized"


def test_unlisted_token_is_rejected(client_for) -> None:
    r = client_for(token_list="abc,def").get(
        "/v1/ping", headers={"Authorization": "Bearer xyz"}
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Bad token"


def test_listed_token_is_accepted(client_for) -> None:
    r = client_for(token_list="abc,def").get(
        "/v1/ping", headers={"Authorization": "Bearer def"}
    )
    assert r.status_code == 200
    body = r.json()
    assert body["strategy"] == "simple"
    assert body["module"] == "gateway"


def test_any_token_is_accepted_without_list(client_for) -> None:
    r = client_for().get("/v1/ping", headers={"Authorization": "Bearer anything"})
    assert r.status_code == 200


def test_whitespace_token_list_does_not_open_the_gate(client_for) -> None:
    r = client_for(token_list="   ").get("/v1/ping", headers={"Authorization": "Bearer anything"})
    assert r.status_code == 401
    assert r.json()["message"] == "Bad token"


def test_query_token_is_accepted(client_for) -> None:
    r = client_for(token_list="abc").get("/v1/ping", params={"access_token": "abc"})
    assert r.status_code == 200


def test_wrong_scheme_is_unauthorized(client_for) -> None:
    r = client_for().get("/v1/ping", headers={"Authorization": "Basic YWJjOmRlZg=="})
    assert r.status_code == 401


def test_multiple_authorization_headers_are_refused(client_for) -> None:
    c = client_for(token_list="abc")
    r = c.get(
        "/v1/ping",
        headers=[("Authorization", "Bearer abc"), ("Authorization", "Bearer abc")],
    )
    assert r.status_code == 401


def test_login_strategies_carry_fixed_scope(client_for) -> None:
    c = client_for(Runtime(login=True), node_env="development", token_list="abc")
    r = c.get("/v1/login/session", headers={"Authorization": "Bearer abc"})
    assert r.status_code == 200
    assert r.json() == {"strategy": "session", "scope": sorted(LOGIN_SCOPE)}

    r = c.get("/v1/login/github", params={"access_token": "abc"})
    assert r.status_code == 200
    assert r.json()["strategy"] == "github"

    r = c.get("/v1/login/github", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_login_routes_absent_without_login_mode(client_for) -> None:
    c = client_for(token_list="abc")
    r = c.get("/v1/login/session", headers={"Authorization": "Bearer abc"})
    assert r.status_code == 404


def test_insufficient_scope_is_forbidden(client_for) -> None:
    c = client_for(options=ServerOptions(routes=_Provider(_scoped_router())))
    r = c.get("/ledger", headers={"Authorization": "Bearer abc"})
    assert r.status_code == 403
    assert r.json()["message"] == "Insufficient scope"


def test_unknown_strategy_is_a_server_error(client_for) -> None:
    c = client_for(options=ServerOptions(routes=_Provider(_scoped_router())))
    r = c.get("/mystery", headers={"Authorization": "Bearer abc"})
    assert r.status_code == 500
    assert r.json()["message"] == "An internal server error occurred"


def test_metrics_admits_graylisted_addresses(client_for) -> None:
    c = client_for(ip_graylist="1.2.3.4,10.0.0.0/8")
    r = c.get("/metrics", headers={"X-Forwarded-For": "10.20.30.40"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert "gateway_admission_decisions_total" in r.text

    r = c.get("/metrics", headers={"X-Forwarded-For": "1.2.3.4"})
    assert r.status_code == 200


def test_metrics_refuses_other_addresses(client_for) -> None:
    c = client_for(ip_graylist="1.2.3.4,10.0.0.0/8")
    r = c.get("/metrics", headers={"X-Forwarded-For": "192.168.1.1"})
    assert r.status_code == 403
    assert r.json()["message"] == "IP address not allowed"


def test_metrics_open_without_graylist(client_for) -> None:
    assert client_for().get("/metrics").status_code == 200


def test_registry_refuses_duplicate_names() -> None:
    registry = StrategyRegistry()
    settings = Settings(_env_file=None)
    registry.register(BearerTokenStrategy("simple", settings))
    with pytest.raises(ValueError, match="simple"):
        registry.register(BearerTokenStrategy("simple", settings))
    registry.register(WhitelistStrategy(None))
    assert registry.names() == ["simple", "whitelist"]
    with pytest.raises(LookupError):
        registry.get("session")


def _request(*authorization: str, query: str = "") -> Request:
    headers = [(b"authorization", value.encode("latin-1")) for value in authorization]
    return Request(
        {"type": "http", "method": "GET", "path": "/", "query_string": query.encode(), "headers": headers}
    )


def test_extract_reads_single_bearer_header() -> None:
    strategy = BearerTokenStrategy("simple", Settings(_env_file=None))
    assert strategy.extract(_request("Bearer abc")) == "abc"
    assert strategy.extract(_request("bearer abc")) == "abc"
    assert strategy.extract(_request()) is None
    assert strategy.extract(_request("Bearer abc", "Bearer abc")) is None


def test_extract_rejects_several_schemes_by_default() -> None:
    strategy = BearerTokenStrategy("simple", Settings(_env_file=None))
    assert strategy.extract(_request("Basic xyz, Bearer abc")) is None


def test_extract_picks_bearer_among_several_schemes_when_allowed() -> None:
    strategy = BearerTokenStrategy("simple", Settings(_env_file=None), allow_multiple_headers=True)
    assert strategy.extract(_request("Basic xyz, Bearer abc")) == "abc"
    assert strategy.extract(_request("Bearer abc, Basic xyz")) == "abc"
    assert strategy.extract(_request("Basic xyz")) is None
    assert strategy.extract(_request("Bearer abc", "Bearer def")) is None


def test_query_token_can_be_disabled() -> None:
    strategy = BearerTokenStrategy("simple", Settings(_env_file=None), allow_query_token=False)
    assert strategy.extract(_request(query="access_token=abc")) is None
    assert strategy.extract(_request("Bearer def", query="access_token=abc")) == "def"

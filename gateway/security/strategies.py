# gateway/security/strategies.py
# Named authentication strategies and the per-app registry routes opt into.
# - "simple": bearer token checked against TOKEN_LIST, no scope.
# - "session"/"github": same check, privileged scope; never outside login mode.
# - "whitelist": remote address checked against the IP graylist.
# Routes declare a strategy with Depends(require_auth("simple")).

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol, Tuple

from starlette.requests import Request

from gateway.config import Settings
from gateway.errors import HTTPError, unauthorized
from gateway.security.graylist import Graylist, remote_address
from gateway.security.tokens import validate_token
from gateway.telemetry.metrics import record_admission

log = logging.getLogger(__name__)

LOGIN_SCOPE: Tuple[str, ...] = ("devops", "ledger", "QA")
ACCESS_TOKEN_PARAM = "access_token"
TOKEN_TYPE = "Bearer"


@dataclass(frozen=True)
class Principal:
    strategy: str
    token: Optional[str] = None
    scope: FrozenSet[str] = frozenset()
    address: Optional[str] = None


class Strategy(Protocol):
    name: str

    def authenticate(self, request: Request) -> Principal: ...


class BearerTokenStrategy:
    def __init__(
        self,
        name: str,
        settings: Settings,
        *,
        scope: Iterable[str] = (),
        allow_query_token: bool = True,
        allow_multiple_headers: bool = False,
    ) -> None:
        self.name = name
        self.scope = frozenset(scope)
        self._settings = settings
        self._allow_query_token = allow_query_token
        self._allow_multiple_headers = allow_multiple_headers

    def extract(self, request: Request) -> Optional[str]:
        if self._allow_query_token:
            query_token = request.query_params.get(ACCESS_TOKEN_PARAM)
            if query_token:
                return query_token

        # Repeated Authorization header lines are refused.
        values = request.headers.getlist("authorization")
        if len(values) != 1:
            return None
        header = values[0]

        # allow_multiple_headers: several schemes in one header, e.g.
        # "Basic xyz, Bearer abc"; the bearer credential is used.
        if self._allow_multiple_headers:
            prefix = TOKEN_TYPE.lower() + " "
            candidates = [part.strip() for part in header.split(",")]
            header = next((c for c in candidates if c.lower().startswith(prefix)), "")

        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != TOKEN_TYPE.lower():
            return None
        return parts[1]

    def authenticate(self, request: Request) -> Principal:
        token = self.extract(request)
        if not token:
            record_admission(self.name, "missing")
            raise unauthorized(scheme=TOKEN_TYPE)
        # Parsed on every call; settings are immutable for the process lifetime.
        if not validate_token(token, self._settings.token_list):
            record_admission(self.name, "rejected")
            raise unauthorized("Bad token", TOKEN_TYPE)
        record_admission(self.name, "accepted")
        return Principal(strategy=self.name, token=token, scope=self.scope)


class WhitelistStrategy:
    def __init__(self, graylist: Optional[Graylist], name: str = "whitelist") -> None:
        self.name = name
        self._graylist = graylist

    def authenticate(self, request: Request) -> Principal:
        address = remote_address(request)
        if self._graylist is not None and not self._graylist.allows(address):
            record_admission(self.name, "rejected")
            log.info("address not in graylist", extra={"remote_address": address})
            raise HTTPError(403, "IP address not allowed")
        record_admission(self.name, "accepted")
        return Principal(strategy=self.name, address=address)


class StrategyRegistry:
    def __init__(self) -> None:
        self._strategies: Dict[str, Strategy] = {}

    def register(self, strategy: Strategy) -> None:
        if strategy.name in self._strategies:
            raise ValueError(f"authentication strategy {strategy.name!r} already registered")
        self._strategies[strategy.name] = strategy
        log.debug("registered authentication strategy %s", strategy.name)

    def get(self, name: str) -> Strategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise LookupError(f"unknown authentication strategy {name!r}") from None

    def names(self) -> List[str]:
        return sorted(self._strategies)

    def __contains__(self, name: object) -> bool:
        return name in self._strategies


def register_login_strategies(registry: StrategyRegistry, settings: Settings) -> None:
    if settings.is_production:
        raise RuntimeError("github authentication was not enabled yet we are in production mode")
    for name in ("session", "github"):
        registry.register(BearerTokenStrategy(name, settings, scope=LOGIN_SCOPE))


def register_simple_strategy(registry: StrategyRegistry, settings: Settings) -> None:
    registry.register(BearerTokenStrategy("simple", settings))


def require_auth(
    strategy: str, scope: Optional[Iterable[str]] = None
) -> Callable[[Request], Awaitable[Principal]]:
    """
    FastAPI dependency factory: authenticate with ``strategy`` and, when
    ``scope`` is given, require at least one overlapping scope.
    """
    required = frozenset(scope or ())

    async def _dependency(request: Request) -> Principal:
        registry: Optional[StrategyRegistry] = getattr(request.app.state, "auth", None)
        if registry is None or strategy not in registry:
            log.error("route requires unavailable authentication strategy %s", strategy)
            raise HTTPError(500, f"unknown authentication strategy {strategy!r}")
        principal = registry.get(strategy).authenticate(request)
        if required and not (required & principal.scope):
            raise HTTPError(403, "Insufficient scope")
        request.state.principal = principal
        return principal

    return _dependency

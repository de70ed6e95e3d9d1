# gateway/config.py
from __future__ import annotations

import os
import socket
import time
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Dict, List, Optional, Protocol

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION = "production"
DEVELOPMENT = "development"

DEFAULT_PORT = 3000
DEFAULT_RESOLVERS = "8.8.8.8,8.8.4.4"


def _csv_to_list(value: Optional[str]) -> List[str]:
    items = [part.strip() for part in (value or "").split(",")]
    return [item for item in items if item]


class Settings(BaseSettings):
    """Process configuration, resolved once at startup and passed around."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # --- Listener ---
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST"))
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535, validation_alias=AliasChoices("PORT"))

    # --- Environment mode: "production" | "development" | anything else ---
    node_env: str = Field(default="", validation_alias=AliasChoices("NODE_ENV", "ENVIRONMENT"))

    # --- Admission gate (raw CSV, parsed by the security types) ---
    ip_graylist: Optional[str] = Field(default=None, validation_alias=AliasChoices("IP_GRAYLIST"))
    token_list: Optional[str] = Field(default=None, validation_alias=AliasChoices("TOKEN_LIST"))

    # --- Identity ---
    server_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("SERVER_ID"))

    # --- Privileged login strategies (session/github) ---
    login_enabled: bool = Field(default=False, validation_alias=AliasChoices("LOGIN_ENABLED"))

    # --- HTTPS enforcement honours X-Forwarded-Proto from a terminating proxy ---
    https_proxy_aware: bool = Field(
        default=True, validation_alias=AliasChoices("HTTPS_PROXY_AWARE")
    )

    # --- DNS resolvers promoted to the front of the resolver list after start ---
    dns_resolvers_preferred: str = Field(
        default=DEFAULT_RESOLVERS, validation_alias=AliasChoices("DNS_RESOLVERS_PREFERRED")
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_json: bool = Field(default=True, validation_alias=AliasChoices("LOG_JSON"))

    @field_validator("node_env", mode="before")
    @classmethod
    def _normalize_env(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_production(self) -> bool:
        return self.node_env == PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.node_env == DEVELOPMENT

    @property
    def preferred_resolvers(self) -> List[str]:
        return _csv_to_list(self.dns_resolvers_preferred)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


class RouteProvider(Protocol):
    """Anything exposing ``async routes(runtime, options)``; modules qualify."""

    async def routes(self, runtime: "Runtime", options: "ServerOptions") -> Any: ...


class ParentConnection(Protocol):
    def send(self, obj: Any) -> None: ...


@dataclass
class Runtime:
    """Caller-supplied runtime context handed to the route provider."""

    login: bool = False
    # Parent-side readiness channel, e.g. a multiprocessing Connection.
    parent: Optional[ParentConnection] = None
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ServerOptions:
    """
    Server options with explicit defaults.

    ``None`` fields are filled by :func:`resolve_options`:
      - id: SERVER_ID, else ``<hostname>:<pid>:<start-time base36>``
      - module: the importable name of the package serving requests
      - routes: the ``gateway.controllers`` provider
    """

    id: Optional[str] = None
    module: Optional[str] = None
    headers_p: bool = True
    remote_p: bool = True
    routes: Optional[RouteProvider] = None


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = ""
    while value:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
    return out


def default_server_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{_base36(int(time.time() * 1000))}"


def resolve_options(options: Optional[ServerOptions], settings: Settings) -> ServerOptions:
    opts = options or ServerOptions()
    if opts.id is None:
        opts = replace(opts, id=settings.server_id or default_server_id())
    if opts.module is None:
        opts = replace(opts, module=__name__.split(".", 1)[0])
    if opts.routes is None:
        from gateway import controllers

        opts = replace(opts, routes=controllers)
    return opts

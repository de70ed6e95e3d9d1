"""Privileged session introspection; only mounted in login mode."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from gateway.config import Runtime, ServerOptions
from gateway.security.strategies import Principal, require_auth

router = APIRouter(prefix="/v1/login", tags=["login"])


def enabled(runtime: Runtime, options: ServerOptions) -> bool:
    return runtime.login


@router.get("/session")
async def session(
    principal: Principal = Depends(require_auth("session", scope=["devops", "ledger", "QA"])),
) -> Dict[str, Any]:
    return {"strategy": principal.strategy, "scope": sorted(principal.scope)}


@router.get("/github")
async def github(
    principal: Principal = Depends(require_auth("github", scope=["devops"])),
) -> Dict[str, Any]:
    return {"strategy": principal.strategy, "scope": sorted(principal.scope)}

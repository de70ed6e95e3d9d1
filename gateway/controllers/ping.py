from __future__ import annotations

import platform
import sys
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from gateway import __version__
from gateway.security.strategies import Principal, require_auth

router = APIRouter(prefix="/v1", tags=["ping"])


@router.get("/ping")
async def ping(
    request: Request, principal: Principal = Depends(require_auth("simple"))
) -> Dict[str, Any]:
    options = request.app.state.options
    settings = request.app.state.settings
    return {
        "id": options.id,
        "module": options.module,
        "version": __version__,
        "environment": settings.node_env or None,
        "runtime": {"python": sys.version.split(" ")[0], "platform": platform.platform()},
        "strategy": principal.strategy,
    }

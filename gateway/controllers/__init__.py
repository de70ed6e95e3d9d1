"""
Default route provider.

Every module in this package exposing an ``APIRouter`` named ``router`` is
included. A module may also define ``enabled(runtime, options) -> bool`` to
opt out, e.g. when its routes need the login strategies.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import List

from fastapi.routing import APIRouter

from gateway.config import Runtime, ServerOptions

log = logging.getLogger(__name__)


async def routes(runtime: Runtime, options: ServerOptions) -> List[APIRouter]:
    found: List[APIRouter] = []
    for info in sorted(pkgutil.iter_modules(__path__, __name__ + "."), key=lambda m: m.name):
        mod = importlib.import_module(info.name)
        router = getattr(mod, "router", None)
        if not isinstance(router, APIRouter):
            continue
        enabled = getattr(mod, "enabled", None)
        if callable(enabled) and not enabled(runtime, options):
            log.debug("controller %s disabled", info.name)
            continue
        found.append(router)
    return found

# gateway/controllers/metrics.py
# Prometheus /metrics exposition, admitted through the IP graylist.

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import REGISTRY, generate_latest

from gateway.security.strategies import require_auth

router = APIRouter()

# Force the classic Prometheus text exposition content type.
TEXT_EXPO_V004 = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/metrics", include_in_schema=False, dependencies=[Depends(require_auth("whitelist"))])
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=TEXT_EXPO_V004)

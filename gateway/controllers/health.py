from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/livez")
async def livez(request: Request) -> Dict[str, Any]:
    options = request.app.state.options
    return {"status": "ok", "ok": True, "id": options.id, "time": time.time()}

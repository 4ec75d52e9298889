"""Health endpoint for keyrotation.

GET /health
  200 {"status": "ok", ...}       — at least one key is active
  503 {"status": "degraded", ...} — every key has been deactivated
  503 {"status": "starting"}      — lifespan has not finished
  503 {"status": "unconfigured"}  — no rotator on app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> Any:
    if not getattr(request.app.state, "ready", False):
        return JSONResponse(status_code=503, content={"status": "starting"})

    rotator = getattr(request.app.state, "rotator", None)
    if rotator is None:
        return JSONResponse(status_code=503, content={"status": "unconfigured"})

    active = rotator.get_active_count()
    body = {
        "status": "ok" if active > 0 else "degraded",
        "active_keys": active,
        "total_keys": rotator.get_total_count(),
    }
    if active == 0:
        return JSONResponse(status_code=503, content=body)
    return body

"""POST /v1/generate — forwards a generateContent call through the rotator.

Request body:
    {"contents": [...], "model": "gemini-2.5-pro"}   (model optional)

Responses:
    200 — upstream JSON body, plus X-Keyrotation-Key header ("API i/N")
    502 — upstream failure: {"error": {"message", "status_code", "rotated"}}
    503 — no active API keys remain
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from keyrotation.generator.client import ContentGeneratorClient, UpstreamError
from keyrotation.rotation.rotator import NoActiveCredentialsError

router = APIRouter(tags=["generator"])

KEY_LABEL_HEADER: str = "X-Keyrotation-Key"


class GenerateRequest(BaseModel):
    contents: list[dict[str, Any]]
    model: Optional[str] = None


@router.post("/v1/generate")
async def generate(body: GenerateRequest, request: Request) -> Any:
    generator: Optional[ContentGeneratorClient] = getattr(request.app.state, "generator", None)
    if generator is None or not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail={"status": "starting"})

    try:
        result = await generator.generate(body.contents, model=body.model)
    except NoActiveCredentialsError as exc:
        return JSONResponse(
            status_code=503,
            content={"error": {"code": exc.code, "message": exc.message}},
        )
    except UpstreamError as exc:
        return JSONResponse(
            status_code=502,
            content={
                "error": {
                    "message": exc.message,
                    "status_code": exc.status_code,
                    "rotated": exc.rotated,
                }
            },
        )

    label = f"API {result.credential.index + 1}/{generator.rotator.get_total_count()}"
    return JSONResponse(content=result.body, headers={KEY_LABEL_HEADER: label})

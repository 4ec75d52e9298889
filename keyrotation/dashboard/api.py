"""Read-only API key status display for keyrotation.

Routes (prefixed with /dashboard/api in main.py):
    GET /status — headline: current key, active/total, policy
    GET /keys   — every key, masked, with its health fields

Also provides format_status_lines() for terminal output (keyrotation-status).

Nothing here mutates the rotator. Full key values never leave this module —
every key is passed through mask_credential() first.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from keyrotation.rotation.rotator import Credential, CredentialRotator, NoActiveCredentialsError

router = APIRouter(tags=["dashboard"])


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _rotator(request: Request) -> CredentialRotator:
    """Return app.state.rotator or raise HTTP 503 if startup has not built one."""
    rotator: Optional[CredentialRotator] = getattr(request.app.state, "rotator", None)
    if rotator is None:
        raise HTTPException(
            status_code=503,
            detail={"status": "unconfigured", "message": "No API keys loaded"},
        )
    return rotator


def _key_row(credential: Credential) -> dict[str, Any]:
    return {
        "index": credential.index,
        "label": f"API {credential.index + 1}",
        "masked_key": credential.masked,
        "active": credential.active,
        "error_count": credential.error_count,
        "last_used": credential.last_used.isoformat() if credential.last_used else None,
        "last_error": credential.last_error,
    }


def build_status(rotator: CredentialRotator) -> dict[str, Any]:
    """Summarize the rotator for display.

    current is None when no active key remains.
    """
    try:
        current: Optional[str] = rotator.describe_current()
    except NoActiveCredentialsError:
        current = None

    config = rotator.config
    return {
        "current": current,
        "active_count": rotator.get_active_count(),
        "total_count": rotator.get_total_count(),
        "strategy": config.strategy.value,
        "max_errors_per_key": config.max_errors_per_key,
        "cooldown_period_ms": config.cooldown_period_ms,
    }


def format_status_lines(rotator: CredentialRotator) -> list[str]:
    """Render a short human-readable summary.

    Example:
        API Status: API 2/3 (AIzaSyAb*******wxyz) (2/3 active)
        Inactive keys:
          API 1 (AIzaSyCd*******1234) - 3 errors (last: HTTP 429: quota)
    """
    status = build_status(rotator)
    headline = status["current"] or "no active keys"
    lines = [f"API Status: {headline} ({status['active_count']}/{status['total_count']} active)"]

    inactive = [c for c in rotator.get_all_status() if not c.active]
    if inactive:
        lines.append("Inactive keys:")
        for credential in inactive:
            line = f"  API {credential.index + 1} ({credential.masked}) - {credential.error_count} errors"
            if credential.last_error:
                line += f" (last: {credential.last_error})"
            lines.append(line)
    return lines


# ─── GET /status ──────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    """Current key and counts.

    Response:
        current:            "API i/N (masked)" | null
        active_count:       int
        total_count:        int
        strategy:           "round-robin" | "least-errors" | "random"
        max_errors_per_key: int
        cooldown_period_ms: int (reserved)
    """
    return build_status(_rotator(request))


# ─── GET /keys ────────────────────────────────────────────────────────────────


@router.get("/keys")
async def get_keys(request: Request) -> dict[str, Any]:
    """Every key in index order, masked."""
    rotator = _rotator(request)
    return {"keys": [_key_row(c) for c in rotator.get_all_status()]}

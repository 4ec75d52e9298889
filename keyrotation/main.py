"""keyrotation FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()                     → app.state.config
  2. read + validate credentials env   → SystemExit(1) on bad input
  3. initialize_global()               → app.state.rotator (process-wide instance)
  4. create_http_client()              → app.state.http_client
  5. ContentGeneratorClient()          → app.state.generator
  6. app.state.ready = True

Shutdown: ready = False → close http client → clear global rotator.

This is the only place the global rotator is initialized. Routes read the
rotator from app.state, never from the registry.
"""

from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.routing import APIRouter

from keyrotation.config import Config, load_config
from keyrotation.dashboard.api import router as dashboard_router
from keyrotation.generator.client import ContentGeneratorClient, create_http_client
from keyrotation.generator.router import router as generator_router
from keyrotation.health import router as health_router
from keyrotation.rotation.registry import clear_global, initialize_global
from keyrotation.rotation.rotator import RotationError
from keyrotation.rotation.validation import require_valid_credentials
from keyrotation.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

root_router = APIRouter(tags=["root"])


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "keyrotation",
        "health": "/health",
        "status": "/dashboard/api/status",
        "generate": "/v1/generate",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("keyrotation starting up...")

    config: Config = load_config()
    app.state.config = config

    raw = os.environ.get(config.credentials_env, "")
    try:
        require_valid_credentials(raw)
        rotator = initialize_global(raw, config.rotation.to_rotator_config())
    except RotationError as exc:
        print(
            f"CONFIG ERROR: Invalid {config.credentials_env}: {exc.message}",
            file=sys.stderr,
        )
        raise SystemExit(1)
    app.state.rotator = rotator

    http_client = create_http_client(config.upstream.timeout_s)
    app.state.http_client = http_client
    app.state.generator = ContentGeneratorClient(
        rotator,
        http_client,
        base_url=config.upstream.base_url,
        model=config.upstream.model,
    )

    app.state.ready = True
    logger.info(
        "keyrotation ready",
        total_keys=rotator.get_total_count(),
        strategy=rotator.config.strategy.value,
    )

    try:
        yield
    finally:
        app.state.ready = False
        await http_client.aclose()
        clear_global()
        logger.info("keyrotation shut down")


# ─── Application factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Tests may skip the lifespan (TestClient without a context manager) and set
    app.state.rotator / app.state.generator / app.state.ready directly.
    """
    application = FastAPI(
        title="keyrotation",
        description="Multi-key rotation for generative-content API clients",
        lifespan=lifespan,
    )
    application.state.ready = False

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(dashboard_router, prefix="/dashboard/api")
    application.include_router(generator_router)
    return application


app = create_app()

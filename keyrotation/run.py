"""Command-line entry points for keyrotation.

    keyrotation          — serve the dashboard + /v1/generate with uvicorn
    keyrotation-status   — validate the credentials env var and print key status

Usage:
    python -m keyrotation.run
    GEMINI_API_KEY="key-a;key-b" keyrotation-status
"""

from __future__ import annotations

import os
import sys

import uvicorn

from keyrotation.config import load_config
from keyrotation.dashboard.api import format_status_lines
from keyrotation.rotation.registry import current_key_info, get_global, initialize_global
from keyrotation.rotation.validation import validate_api_key_environment

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the keyrotation server.

    Raises:
        SystemExit: Propagated from load_config() on config parse errors.
    """
    config = load_config()

    uvicorn.run(
        "keyrotation.main:app",
        host=config.server.host,
        port=config.server.port,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


def status_main() -> None:
    """Print a one-shot status summary for the configured keys.

    Exits 1 with the validation message when the env var is missing or
    malformed, or when no key is active.
    """
    config = load_config()
    rotator_config = config.rotation.to_rotator_config()

    error = validate_api_key_environment(env_var=config.credentials_env, config=rotator_config)
    if error is not None:
        print(error, file=sys.stderr)
        raise SystemExit(1)

    rotator = get_global()
    if rotator is None:
        # validation only builds a rotator for more than one key
        rotator = initialize_global(os.environ[config.credentials_env], rotator_config)

    if current_key_info() is None:
        print("No active API keys available", file=sys.stderr)
        raise SystemExit(1)

    for line in format_status_lines(rotator):
        print(line)


if __name__ == "__main__":
    main()

"""Companion validation for raw API key strings.

The rotator accepts any non-empty key. This module applies the stricter
format check used before a rotator is built (minimum key length) and turns
failures into operator-facing messages.

Implements:
  - parse_and_validate_credentials() — non-raising check, returns ValidationResult
  - require_valid_credentials()      — raising variant (InvalidFormatError etc.)
  - validate_api_key_environment()   — startup check of the credentials env var;
                                       initializes the global rotator for > 1 key
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from keyrotation.constants import DEFAULT_CREDENTIALS_ENV, MIN_CREDENTIAL_LENGTH
from keyrotation.rotation.registry import initialize_global
from keyrotation.rotation.rotator import (
    ConfigLike,
    EmptyInputError,
    NoValidCredentialsError,
    RotationError,
    split_credentials,
)
from keyrotation.utils.logger import get_logger

logger = get_logger(__name__)


class InvalidFormatError(RotationError):
    """Raised when one or more keys are shorter than MIN_CREDENTIAL_LENGTH."""

    code: str = "invalid_format"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    key_count: int
    error: Optional[str] = None


def _short_key_message(count: int) -> str:
    return (
        f"{count} API key(s) appear to be invalid "
        f"(should be at least {MIN_CREDENTIAL_LENGTH} characters)"
    )


def parse_and_validate_credentials(raw: Optional[str]) -> ValidationResult:
    """Check a raw ``;``-delimited key string without raising.

    ``key_count`` is the number of non-empty keys found, even when some are
    too short.
    """
    if not raw or not raw.strip():
        return ValidationResult(is_valid=False, key_count=0, error=EmptyInputError().message)

    keys = split_credentials(raw)
    if not keys:
        return ValidationResult(is_valid=False, key_count=0, error=NoValidCredentialsError().message)

    short = [key for key in keys if len(key) < MIN_CREDENTIAL_LENGTH]
    if short:
        return ValidationResult(is_valid=False, key_count=len(keys), error=_short_key_message(len(short)))

    return ValidationResult(is_valid=True, key_count=len(keys))


def require_valid_credentials(raw: Optional[str]) -> list[str]:
    """Return the parsed keys, or raise the matching RotationError subclass."""
    if not raw or not raw.strip():
        raise EmptyInputError()
    keys = split_credentials(raw)
    if not keys:
        raise NoValidCredentialsError()
    short = [key for key in keys if len(key) < MIN_CREDENTIAL_LENGTH]
    if short:
        raise InvalidFormatError(_short_key_message(len(short)))
    return keys


def validate_api_key_environment(
    environ: Optional[Mapping[str, str]] = None,
    env_var: str = DEFAULT_CREDENTIALS_ENV,
    config: ConfigLike = None,
) -> Optional[str]:
    """Validate the credentials environment variable at startup.

    Returns None when the variable is usable, otherwise a message suitable for
    showing to the operator. When more than one key is configured, the global
    rotator is (re)initialized from the variable.
    """
    env = os.environ if environ is None else environ
    raw = env.get(env_var)
    if not raw:
        return (
            f"{env_var} environment variable not found. "
            "Add that to your environment and try again!"
        )

    result = parse_and_validate_credentials(raw)
    if not result.is_valid:
        return f"Invalid {env_var} format: {result.error}"

    if result.key_count > 1:
        try:
            initialize_global(raw, config)
        except RotationError as exc:
            return f"Failed to initialize API key rotator: {exc.message}"
        logger.info("Initialized API keys for rotation", key_count=result.key_count)

    return None

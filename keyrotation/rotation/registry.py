"""Process-wide rotator accessor.

Only the composition root (keyrotation/main.py lifespan, or
validate_api_key_environment() during CLI-style startup) should call
initialize_global(). Everything downstream receives the rotator explicitly;
these helpers exist for callers that have no handle to thread through.

Implements:
  - initialize_global()      — build a rotator and replace any previous one
  - get_global()             — current instance or None
  - has_multiple()           — True when the global instance holds > 1 key
  - clear_global()           — drop the instance
  - rotate_global()          — rotate if there is anything to rotate to
  - consume_rotation_flag()  — read-and-clear "a rotation happened" flag
  - report_global_error()    — forward a failure to the global instance
  - current_key_info()       — "API i/N (masked)" or None
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from keyrotation.rotation.rotator import ConfigLike, CredentialRotator, RotationError
from keyrotation.utils.logger import get_logger

logger = get_logger(__name__)

_registry_lock = threading.Lock()
_global_rotator: Optional[CredentialRotator] = None
_rotated_flag: bool = False


@dataclass(frozen=True)
class RotationOutcome:
    """Result of rotate_global().

    rotated:     False when there was no instance, only one key, or rotation failed.
    current_key: The newly selected key (plaintext — do not log).
    key_info:    Display form, e.g. "API 2/3 (AIzaSyAb*******wxyz)".
    """

    rotated: bool
    current_key: Optional[str] = None
    key_info: Optional[str] = None


def initialize_global(raw: str, config: ConfigLike = None) -> CredentialRotator:
    """Construct a rotator from ``raw`` and install it as the process-wide instance.

    The previous instance (if any) is replaced wholesale. Construction errors
    propagate and leave the previous instance in place.
    """
    global _global_rotator, _rotated_flag
    rotator = CredentialRotator(raw, config)
    with _registry_lock:
        _global_rotator = rotator
        _rotated_flag = False
    logger.info(
        "Global API key rotator initialized",
        total=rotator.get_total_count(),
        strategy=rotator.config.strategy.value,
    )
    return rotator


def get_global() -> Optional[CredentialRotator]:
    with _registry_lock:
        return _global_rotator


def has_multiple() -> bool:
    rotator = get_global()
    return rotator is not None and rotator.get_total_count() > 1


def clear_global() -> None:
    global _global_rotator, _rotated_flag
    with _registry_lock:
        _global_rotator = None
        _rotated_flag = False


def rotate_global() -> RotationOutcome:
    """Rotate the global rotator to its next key.

    Never raises: rotation failures are logged and reported as rotated=False.
    """
    global _rotated_flag
    rotator = get_global()
    if rotator is None or rotator.get_total_count() <= 1:
        return RotationOutcome(rotated=False)

    try:
        credential = rotator.rotate()
        key_info = rotator.describe_current()
    except RotationError as exc:
        logger.error("Failed to rotate API key", error=exc.message, code=exc.code)
        return RotationOutcome(rotated=False)

    with _registry_lock:
        _rotated_flag = True
    logger.info("Switched API key", key_info=key_info)
    return RotationOutcome(rotated=True, current_key=credential.value, key_info=key_info)


def consume_rotation_flag() -> bool:
    """Return whether a rotation happened since the last call, and clear the flag."""
    global _rotated_flag
    with _registry_lock:
        rotated = _rotated_flag
        _rotated_flag = False
    return rotated


def report_global_error(message: str) -> None:
    rotator = get_global()
    if rotator is not None:
        rotator.report_error(message)


def current_key_info() -> Optional[str]:
    """Display form of the global rotator's current key, or None.

    None when there is no instance or no active key remains.
    """
    rotator = get_global()
    if rotator is None:
        return None
    try:
        return rotator.describe_current()
    except RotationError:
        return None

"""keyrotation API key rotation package.

Public API:
  - CredentialRotator            — health table + rotation policies for N keys
  - RotatorConfig                — strategy, max_errors_per_key, cooldown_period_ms (reserved)
  - RotationStrategy             — round-robin | least-errors | random
  - Credential                   — snapshot of one key and its health
  - mask_credential()            — redacted display form of a key
  - initialize_global() / get_global() / has_multiple() — process-wide accessor
  - parse_and_validate_credentials() / validate_api_key_environment() — startup checks
  - RotationError and subclasses — EmptyInputError, NoValidCredentialsError,
                                   NoActiveCredentialsError, InvalidRotatorConfigError,
                                   InvalidFormatError
"""

from __future__ import annotations

from keyrotation.rotation.registry import (
    RotationOutcome,
    clear_global,
    consume_rotation_flag,
    current_key_info,
    get_global,
    has_multiple,
    initialize_global,
    report_global_error,
    rotate_global,
)
from keyrotation.rotation.rotator import (
    Credential,
    CredentialRotator,
    EmptyInputError,
    InvalidRotatorConfigError,
    NoActiveCredentialsError,
    NoValidCredentialsError,
    RotationError,
    RotationStrategy,
    RotatorConfig,
    mask_credential,
    split_credentials,
)
from keyrotation.rotation.validation import (
    InvalidFormatError,
    ValidationResult,
    parse_and_validate_credentials,
    require_valid_credentials,
    validate_api_key_environment,
)

__all__ = [
    "Credential",
    "CredentialRotator",
    "EmptyInputError",
    "InvalidFormatError",
    "InvalidRotatorConfigError",
    "NoActiveCredentialsError",
    "NoValidCredentialsError",
    "RotationError",
    "RotationOutcome",
    "RotationStrategy",
    "RotatorConfig",
    "ValidationResult",
    "clear_global",
    "consume_rotation_flag",
    "current_key_info",
    "get_global",
    "has_multiple",
    "initialize_global",
    "mask_credential",
    "parse_and_validate_credentials",
    "report_global_error",
    "require_valid_credentials",
    "rotate_global",
    "split_credentials",
    "validate_api_key_environment",
]

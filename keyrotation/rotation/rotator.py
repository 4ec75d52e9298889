"""Multi-key rotation manager for keyrotation.

Implements:
  - CredentialRotator      — health table + selection policies for a set of API keys
  - RotatorConfig          — immutable rotation policy (strategy, error threshold)
  - RotationStrategy       — round-robin | least-errors | random
  - mask_credential()      — redacted display form of a key

State model:
  - The credential table is built once from the raw ``;``-delimited string and
    never grows or shrinks. Only the health fields (active, error_count,
    last_used, last_error) change.
  - ``current_index`` always names a construction-time index. It may point at a
    deactivated key; selection re-derives the active subset on every read.
  - A key is deactivated only by report_error() and reactivated only by
    reset_error_counts().

Thread-safety:
  Every public method acquires one threading.Lock covering the table and
  current_index together. No method performs I/O or waits on anything else
  while holding it; log calls happen after the lock is released.
"""

from __future__ import annotations

import dataclasses
import random
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Mapping, Optional, Union

from keyrotation.constants import (
    CREDENTIAL_DELIMITER,
    DEFAULT_COOLDOWN_PERIOD_MS,
    DEFAULT_MAX_ERRORS_PER_KEY,
    DEFAULT_STRATEGY,
)
from keyrotation.utils.logger import get_logger
from keyrotation.utils.masking import mask_credential

logger = get_logger(__name__)


# ─── Exceptions ───────────────────────────────────────────────────────────────


class RotationError(Exception):
    """Base class for rotation failures. ``code`` is stable for API responses."""

    code: str = "rotation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EmptyInputError(RotationError):
    """Raised when the raw credential string is empty or whitespace-only."""

    code: str = "empty_input"

    def __init__(self, message: str = "No API keys provided") -> None:
        super().__init__(message)


class NoValidCredentialsError(RotationError):
    """Raised when the raw string contains only delimiters and whitespace."""

    code: str = "no_valid_credentials"

    def __init__(self, message: str = "No valid API keys found after parsing") -> None:
        super().__init__(message)


class NoActiveCredentialsError(RotationError):
    """Raised when every key has been deactivated."""

    code: str = "no_active_credentials"

    def __init__(self, message: str = "No active API keys available") -> None:
        super().__init__(message)


class InvalidRotatorConfigError(RotationError):
    """Raised when a RotatorConfig field is out of range or unknown."""

    code: str = "invalid_config"


# ─── Policy ───────────────────────────────────────────────────────────────────


class RotationStrategy(str, Enum):
    ROUND_ROBIN = "round-robin"
    LEAST_ERRORS = "least-errors"
    RANDOM = "random"


@dataclass(frozen=True)
class RotatorConfig:
    """Rotation policy, fixed for the lifetime of a rotator.

    Fields:
        strategy:           How rotate() picks the next key.
        max_errors_per_key: Reported errors at which a key is deactivated (≥ 1).
        cooldown_period_ms: Reserved. Validated and surfaced in status output
                            but not used for reactivation — a deactivated key
                            stays inactive until reset_error_counts().
    """

    strategy: RotationStrategy = RotationStrategy(DEFAULT_STRATEGY)
    max_errors_per_key: int = DEFAULT_MAX_ERRORS_PER_KEY
    cooldown_period_ms: int = DEFAULT_COOLDOWN_PERIOD_MS

    def __post_init__(self) -> None:
        try:
            strategy = RotationStrategy(self.strategy)
        except ValueError:
            valid = sorted(s.value for s in RotationStrategy)
            raise InvalidRotatorConfigError(
                f"Invalid rotation strategy: {self.strategy!r}. Supported values: {valid}."
            ) from None
        # frozen dataclass: normalise "round-robin" to RotationStrategy.ROUND_ROBIN
        object.__setattr__(self, "strategy", strategy)

        if isinstance(self.max_errors_per_key, bool) or not isinstance(self.max_errors_per_key, int) \
                or self.max_errors_per_key < 1:
            raise InvalidRotatorConfigError(
                f"max_errors_per_key must be a positive integer, got {self.max_errors_per_key!r}"
            )
        if isinstance(self.cooldown_period_ms, bool) or not isinstance(self.cooldown_period_ms, int) \
                or self.cooldown_period_ms < 0:
            raise InvalidRotatorConfigError(
                f"cooldown_period_ms must be a non-negative integer, got {self.cooldown_period_ms!r}"
            )

    @classmethod
    def from_partial(cls, overrides: Optional[Mapping[str, object]] = None) -> "RotatorConfig":
        """Merge a partial mapping over the defaults.

        Raises:
            InvalidRotatorConfigError: Unknown field name or invalid value.
        """
        if not overrides:
            return cls()
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise InvalidRotatorConfigError(f"Unknown rotator config field(s): {unknown}")
        return cls(**overrides)  # type: ignore[arg-type]


ConfigLike = Union[RotatorConfig, Mapping[str, object], None]


# ─── Credential ───────────────────────────────────────────────────────────────


@dataclass
class Credential:
    """One managed API key plus its health metadata.

    ``index`` is the 0-based position in the input list and never changes.
    Instances returned by CredentialRotator are copies; mutating them has no
    effect on the rotator.
    """

    value: str
    index: int
    active: bool = True
    error_count: int = 0
    last_used: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def masked(self) -> str:
        return mask_credential(self.value)


def split_credentials(raw: str) -> list[str]:
    """Split on ``;``, trim each piece, drop empty pieces."""
    return [piece.strip() for piece in raw.split(CREDENTIAL_DELIMITER) if piece.strip()]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── CredentialRotator ───────────────────────────────────────────────────────


class CredentialRotator:
    """Tracks key health and selects the current key under a rotation policy.

    Usage:
        rotator = CredentialRotator("key-a;key-b;key-c", {"strategy": "least-errors"})
        key = rotator.get_current().value
        ...
        rotator.report_error("429 RESOURCE_EXHAUSTED")
        rotator.rotate()

    Args:
        raw:    ``;``-delimited API keys. Whitespace around keys is ignored.
        config: RotatorConfig, a partial mapping merged over defaults, or None.
        rng:    random.Random used by the random strategy (seed it in tests).
        clock:  Zero-arg callable returning the time stamped into last_used.

    Raises:
        EmptyInputError:           raw is empty or whitespace-only.
        NoValidCredentialsError:   raw contains no non-empty keys.
        InvalidRotatorConfigError: config is invalid.
    """

    def __init__(
        self,
        raw: str,
        config: ConfigLike = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if not raw or not raw.strip():
            raise EmptyInputError()

        values = split_credentials(raw)
        if not values:
            raise NoValidCredentialsError()

        self._config = config if isinstance(config, RotatorConfig) else RotatorConfig.from_partial(config)
        self._credentials: list[Credential] = [
            Credential(value=value, index=index) for index, value in enumerate(values)
        ]
        self._current_index = 0
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._lock = threading.Lock()

        logger.debug(
            "Credential rotator initialized",
            total=len(self._credentials),
            strategy=self._config.strategy.value,
            max_errors_per_key=self._config.max_errors_per_key,
        )

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def config(self) -> RotatorConfig:
        return self._config

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._current_index

    # ── Selection ─────────────────────────────────────────────────────────────

    def get_current(self) -> Credential:
        """Return the current key and stamp its last_used time.

        Falls back to the lowest-index active key if the current one has been
        deactivated.

        Raises:
            NoActiveCredentialsError: Every key is inactive.
        """
        with self._lock:
            return self._select_current(touch=True)

    def get_current_info(self) -> Credential:
        """Same selection as get_current(), without touching last_used."""
        with self._lock:
            return self._select_current(touch=False)

    def rotate(self) -> Credential:
        """Move to another active key per the configured strategy.

        Returns the newly current key (last_used stamped).

        Raises:
            NoActiveCredentialsError: Every key is inactive.
        """
        with self._lock:
            active = self._active()
            if not active:
                raise NoActiveCredentialsError("No active API keys available for rotation")

            previous = self._current_index
            strategy = self._config.strategy
            if strategy is RotationStrategy.ROUND_ROBIN:
                self._current_index = self._next_round_robin(active)
            elif strategy is RotationStrategy.LEAST_ERRORS:
                self._current_index = min(active, key=lambda c: (c.error_count, c.index)).index
            else:
                self._current_index = self._rng.choice(active).index

            current = self._select_current(touch=True)

        logger.debug(
            "Credential rotated",
            strategy=strategy.value,
            from_index=previous,
            to_index=current.index,
        )
        return current

    # ── Health mutation ───────────────────────────────────────────────────────

    def report_error(self, message: str, index: Optional[int] = None) -> None:
        """Record a failure against the key at current_index.

        Pass ``index`` to charge a specific key instead, e.g. the fallback key a
        request was actually sent with. Increments error_count, overwrites
        last_error, and deactivates the key once error_count reaches
        max_errors_per_key. Never raises.
        """
        with self._lock:
            target = self._current_index if index is None else index
            credential = self._by_index(target)
            if credential is None:
                return

            credential.error_count += 1
            credential.last_error = message

            deactivated = credential.active and credential.error_count >= self._config.max_errors_per_key
            if deactivated:
                credential.active = False
            snapshot = dataclasses.replace(credential)

        if deactivated:
            logger.warning(
                "API key deactivated",
                api_key=snapshot.value,
                index=snapshot.index,
                error_count=snapshot.error_count,
                last_error=message,
            )
        else:
            logger.debug(
                "API key error reported",
                index=snapshot.index,
                error_count=snapshot.error_count,
            )

    def reset_error_counts(self) -> None:
        """Reactivate every key and clear all error state. Idempotent."""
        with self._lock:
            for credential in self._credentials:
                credential.error_count = 0
                credential.active = True
                credential.last_error = None
        logger.info("API key error counts reset", total=len(self._credentials))

    # ── Read-only views ───────────────────────────────────────────────────────

    def get_all_status(self) -> list[Credential]:
        """Return copies of every key (active and inactive) in index order."""
        with self._lock:
            return [dataclasses.replace(c) for c in self._credentials]

    def get_active_count(self) -> int:
        with self._lock:
            return len(self._active())

    def get_total_count(self) -> int:
        return len(self._credentials)

    def describe_current(self) -> str:
        """Short display form of the current key, e.g. ``API 2/3 (AIzaSyAb*******wxyz)``.

        Raises:
            NoActiveCredentialsError: Every key is inactive.
        """
        current = self.get_current_info()
        return f"API {current.index + 1}/{self.get_total_count()} ({current.masked})"

    @staticmethod
    def mask(value: str) -> str:
        return mask_credential(value)

    # ── Internals (caller holds self._lock) ──────────────────────────────────

    def _active(self) -> list[Credential]:
        return [c for c in self._credentials if c.active]

    def _by_index(self, index: int) -> Optional[Credential]:
        if 0 <= index < len(self._credentials):
            return self._credentials[index]
        return None

    def _select_current(self, touch: bool) -> Credential:
        active = self._active()
        if not active:
            raise NoActiveCredentialsError()

        current = next((c for c in active if c.index == self._current_index), active[0])
        if touch:
            current.last_used = self._clock()
        return dataclasses.replace(current)

    def _next_round_robin(self, active: list[Credential]) -> int:
        # An absent current key counts as the slot just before active[0].
        position = next(
            (pos for pos, c in enumerate(active) if c.index == self._current_index),
            -1,
        )
        return active[(position + 1) % len(active)].index


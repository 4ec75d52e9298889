"""Config loading for keyrotation.

Reads `.keyrotation/config.yaml` (or `~/.keyrotation/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field, or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. KEYROTATION_CONFIG environment variable (if set)
  3. `.keyrotation/config.yaml` (working directory — for development)
  4. `~/.keyrotation/config.yaml` (home directory)

Environment variable overrides:
  KEYROTATION_PORT     — overrides server.port
  KEYROTATION_STRATEGY — overrides rotation.strategy
  KEYROTATION_CONFIG   — sets an explicit config file path to try first

The API keys themselves are never read from the config file — only from the
environment variable named by `credentials_env` (default GEMINI_API_KEY).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from keyrotation.constants import (
    DEFAULT_COOLDOWN_PERIOD_MS,
    DEFAULT_CREDENTIALS_ENV,
    DEFAULT_MAX_ERRORS_PER_KEY,
    DEFAULT_STRATEGY,
)
from keyrotation.rotation.rotator import InvalidRotatorConfigError, RotatorConfig
from keyrotation.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (KEYROTATION_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".keyrotation/config.yaml",
    os.path.expanduser("~/.keyrotation/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class RotationSettings:
    """Rotation policy as written in the config file.

    Converted to an immutable RotatorConfig via to_rotator_config().
    """

    strategy: str = DEFAULT_STRATEGY  # "round-robin" | "least-errors" | "random"
    max_errors_per_key: int = DEFAULT_MAX_ERRORS_PER_KEY
    cooldown_period_ms: int = DEFAULT_COOLDOWN_PERIOD_MS  # reserved, not enforced

    def to_rotator_config(self) -> RotatorConfig:
        return RotatorConfig(
            strategy=self.strategy,  # type: ignore[arg-type]
            max_errors_per_key=self.max_errors_per_key,
            cooldown_period_ms=self.cooldown_period_ms,
        )


@dataclass
class UpstreamConfig:
    """Generative-content API endpoint configuration."""

    base_url: str = "https://generativelanguage.googleapis.com"
    model: str = "gemini-2.5-pro"
    timeout_s: float = 30.0


@dataclass
class ServerConfig:
    """Status dashboard binding configuration."""

    host: str = "127.0.0.1"
    port: int = 4343


@dataclass
class Config:
    """Root configuration object populated from .keyrotation/config.yaml.

    All fields have safe defaults — keyrotation can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    credentials_env: str = DEFAULT_CREDENTIALS_ENV
    rotation: RotationSettings = field(default_factory=RotationSettings)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an invalid rotation section.
        """
        # ── Rotation ──────────────────────────────────────────────────────────
        rotation_raw = raw.get("rotation") or {}
        rotation = RotationSettings(
            strategy=rotation_raw.get("strategy", DEFAULT_STRATEGY),
            max_errors_per_key=rotation_raw.get("max_errors_per_key", DEFAULT_MAX_ERRORS_PER_KEY),
            cooldown_period_ms=rotation_raw.get("cooldown_period_ms", DEFAULT_COOLDOWN_PERIOD_MS),
        )
        _check_rotation(rotation, path)

        # ── Upstream ──────────────────────────────────────────────────────────
        upstream_raw = raw.get("upstream") or {}
        upstream = UpstreamConfig(
            base_url=upstream_raw.get("base_url", UpstreamConfig.base_url),
            model=upstream_raw.get("model", UpstreamConfig.model),
            timeout_s=upstream_raw.get("timeout_s", UpstreamConfig.timeout_s),
        )

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", ServerConfig.host),
            port=server_raw.get("port", ServerConfig.port),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            credentials_env=raw.get("credentials_env", DEFAULT_CREDENTIALS_ENV),
            rotation=rotation,
            upstream=upstream,
            server=server,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate keyrotation configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).
    Env var overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid rotation settings, or invalid env overrides.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("KEYROTATION_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        msg = (
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "Check the YAML syntax and try again."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)
    except OSError as exc:
        msg = f"CONFIG ERROR: Could not read {found_path}: {exc}"
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if not isinstance(raw, dict):
        if raw is None:
            msg = (
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        else:
            msg = (
                f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
                "The config file must be a YAML dictionary at the top level."
            )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        msg = (
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if version not in SUPPORTED_VERSIONS:
        msg = (
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.rotation.cooldown_period_ms != DEFAULT_COOLDOWN_PERIOD_MS:
        logger.warning("rotation.cooldown_period_ms is reserved and not enforced — ignored")

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        strategy=config.rotation.strategy,
        max_errors_per_key=config.rotation.max_errors_per_key,
    )
    return config


def _check_rotation(rotation: RotationSettings, path: Optional[str]) -> None:
    """Exit with a CONFIG ERROR if the rotation settings cannot build a RotatorConfig."""
    try:
        rotation.to_rotator_config()
    except InvalidRotatorConfigError as exc:
        source = path or "environment"
        print(f"CONFIG ERROR: {source}: {exc.message}", file=sys.stderr)
        raise SystemExit(1)


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Handles:
      KEYROTATION_PORT     — integer; SystemExit(1) if invalid
      KEYROTATION_STRATEGY — rotation strategy name; SystemExit(1) if invalid
    """
    env_port = os.environ.get("KEYROTATION_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            msg = (
                f"CONFIG ERROR: KEYROTATION_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )
            print(msg, file=sys.stderr)
            raise SystemExit(1)

    env_strategy = os.environ.get("KEYROTATION_STRATEGY")
    if env_strategy:
        config.rotation.strategy = env_strategy.strip()
        _check_rotation(config.rotation, None)

"""Shared constants for keyrotation.

Parsing, masking and default-policy values used across modules are defined here.
No magic numbers in other modules — import from here.
"""

# ─── Credential list parsing ──────────────────────────────────────────────────

# Separator between keys in the raw credential string (e.g. GEMINI_API_KEY="k1;k2").
CREDENTIAL_DELIMITER: str = ";"

# Minimum trimmed length for a key to pass the companion format check.
# Enforced by rotation/validation.py only; the rotator accepts any non-empty key.
MIN_CREDENTIAL_LENGTH: int = 8

# ─── Masking ──────────────────────────────────────────────────────────────────

# Keys of this length or shorter are fully masked.
MASK_THRESHOLD: int = 12

# Characters revealed at each end of a key longer than MASK_THRESHOLD.
MASK_VISIBLE_PREFIX: int = 8
MASK_VISIBLE_SUFFIX: int = 4

MASK_CHAR: str = "*"

# ─── Rotation policy defaults ────────────────────────────────────────────────

DEFAULT_STRATEGY: str = "round-robin"
DEFAULT_MAX_ERRORS_PER_KEY: int = 3

# Reserved: carried in RotatorConfig and reported in status, never consulted.
DEFAULT_COOLDOWN_PERIOD_MS: int = 60_000  # 1 minute

# ─── Environment ──────────────────────────────────────────────────────────────

# Environment variable holding the raw credential string.
DEFAULT_CREDENTIALS_ENV: str = "GEMINI_API_KEY"

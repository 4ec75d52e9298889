"""Credential masking for safe display and logging."""

from keyrotation.constants import MASK_CHAR, MASK_THRESHOLD, MASK_VISIBLE_PREFIX, MASK_VISIBLE_SUFFIX


def mask_credential(value: str) -> str:
    """Return a redacted form of ``value``.

    Keys of MASK_THRESHOLD characters or fewer are masked entirely. Longer keys
    keep their first 8 and last 4 characters:

        >>> mask_credential("AIzaSyTest123456789")
        'AIzaSyTe*******6789'
        >>> mask_credential("short")
        '*****'
    """
    if len(value) <= MASK_THRESHOLD:
        return MASK_CHAR * len(value)
    hidden = len(value) - MASK_VISIBLE_PREFIX - MASK_VISIBLE_SUFFIX
    return f"{value[:MASK_VISIBLE_PREFIX]}{MASK_CHAR * hidden}{value[-MASK_VISIBLE_SUFFIX:]}"

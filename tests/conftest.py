"""Root test configuration for keyrotation.

Every test starts with no global rotator, no keyrotation env overrides, and no
config file on the default search path — so a developer's own
~/.keyrotation/config.yaml or GEMINI_API_KEY never leaks into a test.
"""

import pytest


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip credential/config env vars and disable default config paths."""
    for name in (
        "GEMINI_API_KEY",
        "KEYROTATION_CONFIG",
        "KEYROTATION_PORT",
        "KEYROTATION_STRATEGY",
    ):
        monkeypatch.delenv(name, raising=False)

    import keyrotation.config

    monkeypatch.setattr(keyrotation.config, "DEFAULT_CONFIG_PATHS", [])


@pytest.fixture(autouse=True)
def reset_global_rotator():
    """Drop the process-wide rotator before and after each test."""
    from keyrotation.rotation.registry import clear_global

    clear_global()
    yield
    clear_global()


@pytest.fixture
def three_keys() -> str:
    return "AIzaSyKeyAlpha0001;AIzaSyKeyBravo0002;AIzaSyKeyCharlie003"

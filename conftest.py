"""Pytest configuration and fixtures for exoconsole tests.

CRITICAL: Tests must never start a real PowerShell host or touch
~/.exoconsole/config.toml.
"""

import os
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def mark_test_mode():
    """Mark test mode so nothing reaches a real tenant by accident.

    Tests that need real Exchange Online should explicitly check for
    RUN_E2E_TESTS=true.
    """
    os.environ["EXOCONSOLE_TEST_MODE"] = "true"

    if os.environ.get("RUN_E2E_TESTS") == "true":
        print("\n" + "=" * 70)
        print("WARNING: RUN_E2E_TESTS=true - E2E tests will use a REAL tenant!")
        print("=" * 70 + "\n")

    yield

    os.environ.pop("EXOCONSOLE_TEST_MODE", None)


@pytest.fixture
def isolated_config(tmp_path):
    """Provide an isolated config directory for tests.

    Use this fixture instead of ~/.exoconsole/config.toml.
    """
    config_dir = tmp_path / ".exoconsole"
    config_dir.mkdir(parents=True)
    return config_dir


@pytest.fixture
def mock_config_path(isolated_config, monkeypatch):
    """Point ConfigManager's default path at the isolated config directory."""
    config_file = isolated_config / "config.toml"

    from exoconsole.config_manager import ConfigManager

    def mock_get_path(custom_path=None):
        if custom_path:
            return Path(custom_path)
        return config_file

    monkeypatch.setattr(ConfigManager, "get_config_path", mock_get_path)

    return config_file

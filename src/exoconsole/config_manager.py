"""Configuration management module.

This module loads operator preferences from a TOML file: which PowerShell
module to provision, which PowerShell executable to use, and how to sign in.

Configuration is optional. Every key has a default and every key can be
overridden on the command line.

Security:
- Config file permissions: 0600 (owner read/write only)
- No credentials are ever read from or written to the config file
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import tomli

logger = logging.getLogger(__name__)

AUTH_METHOD_CHOICES = ("auto", "browser", "device")

DEFAULT_MODULE_NAME = "ExchangeOnlineManagement"


class ConfigError(Exception):
    """Raised when configuration operations fail."""

    pass


@dataclass
class ExoConsoleConfig:
    """exoconsole configuration data."""

    module_name: str = DEFAULT_MODULE_NAME
    powershell_executable: str | None = None  # None = auto-detect pwsh/powershell
    auth_method: str = "auto"  # auto, browser or device
    user_principal_name: str | None = None  # Pre-fills the sign-in account
    organization: str | None = None  # Tenant for delegated (GDAP) access
    skip_update_check: bool = False

    def __post_init__(self) -> None:
        if self.auth_method not in AUTH_METHOD_CHOICES:
            raise ConfigError(
                f"Invalid auth_method '{self.auth_method}'. "
                f"Expected one of: {', '.join(AUTH_METHOD_CHOICES)}"
            )
        if not self.module_name or not self.module_name.strip():
            raise ConfigError("module_name cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExoConsoleConfig":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning(f"Unknown config key: {key}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def with_overrides(self, **overrides: Any) -> "ExoConsoleConfig":
        """Return a copy with CLI values applied; None means "not given"."""
        data = asdict(self)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return ExoConsoleConfig(**data)


class ConfigManager:
    """Load the exoconsole configuration file.

    Configuration is stored at ~/.exoconsole/config.toml.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".exoconsole"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If a custom path was given and does not exist
        """
        if custom_path:
            path = Path(custom_path).expanduser().resolve()
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path

        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> ExoConsoleConfig:
        """Load configuration from file.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            ExoConsoleConfig object (defaults when no file exists)

        Raises:
            ConfigError: If the file cannot be read or holds invalid values
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return ExoConsoleConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)

            logger.debug(f"Loaded config from: {config_path}")
            return ExoConsoleConfig.from_dict(data)

        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to load config: {e}") from e


__all__ = ["AUTH_METHOD_CHOICES", "ConfigError", "ConfigManager", "ExoConsoleConfig"]

"""
Unit tests for configuration loading.

Test Coverage:
- Defaults when no config file exists
- TOML parsing and unknown-key handling
- Validation of auth_method and module_name
- Permission fix-up to 0600
- CLI overrides
"""

import os
import sys

import pytest

from exoconsole.config_manager import ConfigError, ConfigManager, ExoConsoleConfig


class TestLoadConfig:
    """ConfigManager.load_config."""

    def test_defaults_without_file(self, mock_config_path):
        config = ConfigManager.load_config()

        assert config == ExoConsoleConfig()
        assert config.module_name == "ExchangeOnlineManagement"
        assert config.auth_method == "auto"

    def test_reads_toml(self, mock_config_path):
        mock_config_path.write_text(
            'auth_method = "device"\n'
            'user_principal_name = "admin@contoso.com"\n'
            "skip_update_check = true\n"
        )

        config = ConfigManager.load_config()

        assert config.auth_method == "device"
        assert config.user_principal_name == "admin@contoso.com"
        assert config.skip_update_check is True

    def test_unknown_keys_are_ignored_with_warning(self, mock_config_path, caplog):
        mock_config_path.write_text('vm_size = "Standard_D2s_v3"\n')

        config = ConfigManager.load_config()

        assert config == ExoConsoleConfig()
        assert "Unknown config key: vm_size" in caplog.text

    def test_invalid_toml(self, mock_config_path):
        mock_config_path.write_text("auth_method = \n")

        with pytest.raises(ConfigError, match="Failed to load config"):
            ConfigManager.load_config()

    def test_invalid_auth_method(self, mock_config_path):
        mock_config_path.write_text('auth_method = "password"\n')

        with pytest.raises(ConfigError, match="Invalid auth_method"):
            ConfigManager.load_config()

    def test_missing_custom_path(self, tmp_path):
        with pytest.raises(ConfigError, match="Config file not found"):
            ConfigManager.get_config_path(str(tmp_path / "nope.toml"))

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_insecure_permissions_are_fixed(self, mock_config_path):
        mock_config_path.write_text('auth_method = "browser"\n')
        os.chmod(mock_config_path, 0o644)

        ConfigManager.load_config()

        assert mock_config_path.stat().st_mode & 0o777 == 0o600


class TestExoConsoleConfig:
    """Dataclass behaviour."""

    def test_empty_module_name_rejected(self):
        with pytest.raises(ConfigError, match="module_name"):
            ExoConsoleConfig(module_name="  ")

    def test_overrides_ignore_none(self):
        base = ExoConsoleConfig(auth_method="device", organization="contoso.onmicrosoft.com")

        merged = base.with_overrides(auth_method=None, organization="fabrikam.onmicrosoft.com")

        assert merged.auth_method == "device"
        assert merged.organization == "fabrikam.onmicrosoft.com"
        assert base.organization == "contoso.onmicrosoft.com"

    def test_overrides_are_validated(self):
        with pytest.raises(ConfigError):
            ExoConsoleConfig().with_overrides(auth_method="kerberos")

    def test_to_dict_drops_none(self):
        data = ExoConsoleConfig().to_dict()

        assert "user_principal_name" not in data
        assert data["auth_method"] == "auto"

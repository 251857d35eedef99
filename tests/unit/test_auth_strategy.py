"""Unit tests for sign-in flow selection."""

import pytest

from exoconsole.auth_strategy import AuthMethod, select_auth_method
from exoconsole.modules.environment_detector import EnvironmentClass, EnvironmentInfo, Platform


def _env(environment_class: EnvironmentClass, host_platform: Platform = Platform.LINUX):
    return EnvironmentInfo(host_platform, environment_class, None)


class TestSelectAuthMethod:
    """Environment class -> sign-in flow."""

    def test_display_uses_browser(self):
        assert select_auth_method(_env(EnvironmentClass.INTERACTIVE_DISPLAY)) == AuthMethod.INTERACTIVE_BROWSER

    def test_headless_uses_device_code(self):
        assert select_auth_method(_env(EnvironmentClass.HEADLESS)) == AuthMethod.DEVICE_CODE

    @pytest.mark.parametrize("host_platform", list(Platform))
    def test_depends_only_on_environment_class(self, host_platform):
        env = _env(EnvironmentClass.HEADLESS, host_platform)

        assert select_auth_method(env) == select_auth_method(env) == AuthMethod.DEVICE_CODE

    @pytest.mark.parametrize(
        "override,expected",
        [
            ("browser", AuthMethod.INTERACTIVE_BROWSER),
            ("device", AuthMethod.DEVICE_CODE),
        ],
    )
    def test_explicit_override_wins(self, override, expected):
        assert select_auth_method(_env(EnvironmentClass.HEADLESS), override) == expected
        assert select_auth_method(_env(EnvironmentClass.INTERACTIVE_DISPLAY), override) == expected

    @pytest.mark.parametrize("override", ["auto", None, ""])
    def test_auto_falls_back_to_environment(self, override):
        env = _env(EnvironmentClass.HEADLESS)

        assert select_auth_method(env, override) == AuthMethod.DEVICE_CODE

    def test_unknown_override_rejected(self):
        with pytest.raises(ValueError):
            select_auth_method(_env(EnvironmentClass.HEADLESS), "password")


def test_display_names():
    assert AuthMethod.DEVICE_CODE.display_name == "device code"
    assert AuthMethod.INTERACTIVE_BROWSER.display_name == "interactive browser"
    assert str(AuthMethod.DEVICE_CODE) == "device"

"""Authentication strategy selection.

Exchange Online offers two sign-in flows that suit an operator console:

- Interactive browser: a browser window opens on this machine.
- Device code: a short code and URL are printed; the operator approves the
  sign-in on any other device. Used where no browser can be shown.

Selection is a pure function of the host environment class, optionally
overridden by an explicit choice in configuration or on the command line.
"""

from enum import StrEnum

from exoconsole.modules.environment_detector import EnvironmentClass, EnvironmentInfo


class AuthMethod(StrEnum):
    """Sign-in flows supported by the console."""

    INTERACTIVE_BROWSER = "browser"
    DEVICE_CODE = "device"

    @property
    def display_name(self) -> str:
        if self == AuthMethod.DEVICE_CODE:
            return "device code"
        return "interactive browser"


def select_auth_method(
    environment: EnvironmentInfo,
    override: str | None = None,
) -> AuthMethod:
    """Pick the sign-in flow for this host.

    Args:
        environment: Detected host environment
        override: "browser", "device", "auto" or None

    Returns:
        AuthMethod to use for the single connection attempt

    Raises:
        ValueError: If override is not a known method

    Example:
        >>> info = EnvironmentInfo(Platform.LINUX, EnvironmentClass.HEADLESS, None)
        >>> select_auth_method(info)
        <AuthMethod.DEVICE_CODE: 'device'>
    """
    if override and override != "auto":
        return AuthMethod(override)

    if environment.environment_class == EnvironmentClass.INTERACTIVE_DISPLAY:
        return AuthMethod.INTERACTIVE_BROWSER
    return AuthMethod.DEVICE_CODE


__all__ = ["AuthMethod", "select_auth_method"]

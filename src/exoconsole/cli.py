"""exoconsole command-line entry point.

Startup order:
    1. Load configuration (file, then CLI overrides)
    2. Check that PowerShell is available
    3. Install or update the ExchangeOnlineManagement module
    4. Start the PowerShell host and ensure a session (exactly once)
    5. Hand over to the interactive dispatcher until the operator exits
"""

import logging
import sys

import click

from exoconsole import __version__
from exoconsole.auth_strategy import select_auth_method
from exoconsole.config_manager import AUTH_METHOD_CHOICES, ConfigError, ConfigManager, ExoConsoleConfig
from exoconsole.dependency_provisioner import (
    DependencyProvisioner,
    PowerShellGalleryRegistry,
    ProvisionError,
    ProvisionStatus,
)
from exoconsole.dispatcher import CommandDispatcher
from exoconsole.exchange_service import ExchangeOnlineService
from exoconsole.modules.interaction_handler import CLIInteractionHandler
from exoconsole.modules.prerequisites import PrerequisiteChecker
from exoconsole.operations import build_registry
from exoconsole.powershell_host import PowerShellHost, PowerShellHostError
from exoconsole.session_manager import SessionError, SessionManager

logger = logging.getLogger(__name__)


def _load_config(config: str | None, **overrides) -> ExoConsoleConfig:
    try:
        return ConfigManager.load_config(config).with_overrides(**overrides)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _provision(powershell: str, exo_config: ExoConsoleConfig) -> None:
    provisioner = DependencyProvisioner(
        PowerShellGalleryRegistry(powershell),
        skip_update_check=exo_config.skip_update_check,
    )
    try:
        result = provisioner.ensure_dependency(exo_config.module_name)
    except ProvisionError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(
            f"Install it manually with: Install-Module {exo_config.module_name} -Scope CurrentUser",
            err=True,
        )
        sys.exit(1)

    if result.status == ProvisionStatus.UPDATE_FAILED:
        click.secho(
            f"Warning: continuing with {result.record.name} {result.record.installed_version}",
            fg="yellow",
            err=True,
        )
    elif result.status == ProvisionStatus.LOOKUP_FAILED:
        click.secho(
            f"Warning: could not check {result.record.name} ({result.message}); continuing without installing",
            fg="yellow",
            err=True,
        )


@click.command(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--config", help="Config file path", type=click.Path())
@click.option(
    "--auth-method",
    type=click.Choice(AUTH_METHOD_CHOICES),
    help="Sign-in flow (default: auto, browser when a display is available)",
)
@click.option("--upn", "user_principal_name", help="Account to sign in with", type=str)
@click.option("--organization", help="Tenant to manage (delegated access)", type=str)
@click.option(
    "--skip-update-check",
    is_flag=True,
    help="Do not check the PowerShell Gallery for a newer module",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.version_option(version=__version__, prog_name="exoconsole")
def main(
    config: str | None,
    auth_method: str | None,
    user_principal_name: str | None,
    organization: str | None,
    skip_update_check: bool,
    verbose: bool,
) -> None:
    """exoconsole - Exchange Online mailbox administration console.

    Connects to Exchange Online once, then offers a menu of calendar and
    mailbox permission tasks until you exit.

    \b
    CONFIGURATION:
        Config file: ~/.exoconsole/config.toml
        Keys: module_name, powershell_executable, auth_method,
              user_principal_name, organization, skip_update_check

    \b
    Examples:
        exoconsole
        exoconsole --auth-method device --upn admin@contoso.com
        exoconsole --organization contoso.onmicrosoft.com
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")

    exo_config = _load_config(
        config,
        auth_method=auth_method,
        user_principal_name=user_principal_name,
        organization=organization,
        skip_update_check=True if skip_update_check else None,
    )

    prerequisites = PrerequisiteChecker().check_all(exo_config.powershell_executable)
    if not prerequisites.all_available:
        click.echo(
            PrerequisiteChecker.format_missing_message(
                prerequisites.missing, prerequisites.platform_name
            ),
            err=True,
        )
        sys.exit(1)

    _provision(prerequisites.powershell, exo_config)

    host = PowerShellHost(prerequisites.powershell, on_output=click.echo)
    exit_code = 0
    try:
        host.start()
        service = ExchangeOnlineService(
            host,
            user_principal_name=exo_config.user_principal_name,
            organization=exo_config.organization,
            module_name=exo_config.module_name,
        )
        session_manager = SessionManager(
            service, lambda: select_auth_method(prerequisites.environment, exo_config.auth_method)
        )
        session_manager.ensure_session()

        dispatcher = CommandDispatcher(
            build_registry(), service, session_manager, CLIInteractionHandler()
        )
        dispatcher.run()
    except (SessionError, PowerShellHostError) as e:
        click.echo(f"Error: {e}", err=True)
        exit_code = 1
    finally:
        host.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()

"""
Shared test fixtures for exoconsole tests.

This module provides common fixtures used across the unit tests:
- Fake Exchange Online service and package registry
- Scripted operator interaction
- The operation registry and a session manager wired to the fake service
"""

import pytest

from exoconsole.auth_strategy import AuthMethod
from exoconsole.modules.interaction_handler import MockInteractionHandler
from exoconsole.operations import build_registry
from exoconsole.session_manager import SessionManager
from tests.mocks.exchange_mock import FakeExchangeService, FakePackageRegistry

# ============================================================================
# REMOTE SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def fake_service():
    """Fake Exchange Online service: first probe fails, later probes succeed."""
    return FakeExchangeService()


@pytest.fixture
def fake_registry():
    """Fake PowerShell Gallery with the module installed and current."""
    return FakePackageRegistry(installed="3.5.0", latest="3.5.0")


# ============================================================================
# CONSOLE FIXTURES
# ============================================================================


@pytest.fixture
def registry():
    """The production operation registry."""
    return build_registry()


@pytest.fixture
def scripted_interaction():
    """Factory for a MockInteractionHandler with the given answers."""

    def _make(*responses: str) -> MockInteractionHandler:
        return MockInteractionHandler(prompt_responses=list(responses))

    return _make


@pytest.fixture
def connected_session_manager(fake_service):
    """Session manager that has already connected via device code."""
    manager = SessionManager(fake_service, lambda: AuthMethod.DEVICE_CODE)
    manager.ensure_session()
    fake_service.calls.clear()
    return manager

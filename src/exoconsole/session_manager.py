"""Exchange Online session lifecycle.

The session manager owns the single session of a console run. Whether a
session is live is decided only by a functional probe: a read-only remote
call that either gets a response or does not. Remote sessions expire without
telling the client, so no locally cached "connected" flag is ever trusted.

State machine:
    NO_SESSION --probe fails--> CONNECTING --connect ok--> CONNECTED
    CONNECTING --connect fails--> NO_SESSION (SessionError raised)
    CONNECTED --probe fails--> NO_SESSION, then full reconnect
    CONNECTED --disconnect()--> NO_SESSION (terminal for the run)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from exoconsole.auth_strategy import AuthMethod
from exoconsole.exchange_service import (
    ConnectFailedError,
    ExchangeService,
    ExchangeServiceError,
    ProbeFailedError,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    NO_SESSION = "no_session"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SessionErrorKind(Enum):
    AUTH_FAILED = "auth_failed"
    UNREACHABLE = "unreachable"


class SessionError(Exception):
    """Raised when no session can be established. Fatal for the run."""

    def __init__(self, message: str, kind: SessionErrorKind):
        super().__init__(message)
        self.kind = kind


@dataclass
class Session:
    """The authenticated channel to Exchange Online.

    auth_method is None only when a live connection was found without this
    manager having connected it.
    """

    auth_method: AuthMethod | None
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class SessionManager:
    """Ensure exactly one working session exists; disconnect on request.

    Example:
        >>> manager = SessionManager(service, lambda: AuthMethod.DEVICE_CODE)
        >>> session = manager.ensure_session()
        >>> manager.state
        <SessionState.CONNECTED: 'connected'>
    """

    def __init__(self, service: ExchangeService, auth_selector: Callable[[], AuthMethod]):
        """Initialize session manager.

        Args:
            service: Remote administration service
            auth_selector: Returns the sign-in flow; called only when connecting
        """
        self.service = service
        self.auth_selector = auth_selector
        self._session: Session | None = None
        self._state = SessionState.NO_SESSION

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    def is_active(self) -> bool:
        """Probe the service. True only if the round-trip succeeded."""
        try:
            self.service.probe()
        except ProbeFailedError as e:
            logger.debug(f"Session probe failed: {e}")
            return False
        return True

    def ensure_session(self) -> Session:
        """Return a live session, connecting if the probe says there is none.

        Returns:
            The active Session

        Raises:
            SessionError: If connecting fails (AUTH_FAILED or UNREACHABLE)
        """
        if self.is_active():
            if self._session is None:
                logger.debug("Adopting an already-live Exchange Online connection")
                self._session = Session(auth_method=None)
            self._state = SessionState.CONNECTED
            return self._session

        if self._session is not None:
            logger.info("Exchange Online session has expired; reconnecting...")
        # A stale session is discarded, never partially reused
        self._session = None
        self._state = SessionState.CONNECTING

        auth_method = self.auth_selector()
        logger.info(f"Connecting to Exchange Online ({auth_method.display_name} sign-in)...")
        try:
            self.service.connect(auth_method)
        except ConnectFailedError as e:
            self._state = SessionState.NO_SESSION
            kind = SessionErrorKind.UNREACHABLE if e.unreachable else SessionErrorKind.AUTH_FAILED
            raise SessionError(f"Could not connect to Exchange Online: {e}", kind) from e

        self._session = Session(auth_method=auth_method)
        self._state = SessionState.CONNECTED
        logger.info("Connected to Exchange Online")
        return self._session

    def disconnect(self) -> None:
        """End the session. Failures are logged, never raised."""
        if self._session is not None or self._state == SessionState.CONNECTED:
            try:
                self.service.disconnect()
                logger.info("Disconnected from Exchange Online")
            except ExchangeServiceError as e:
                logger.warning(f"Disconnect did not complete cleanly: {e}")
        self._session = None
        self._state = SessionState.NO_SESSION


__all__ = ["Session", "SessionError", "SessionErrorKind", "SessionManager", "SessionState"]

"""In-memory session collaborators for console use and tests."""
from typing import Optional

from audit_engine.core.interfaces.session import NavigatorPort, SessionPort
from audit_engine.core.settings import logger


class InMemorySessionAdapter(SessionPort):
    """Holds the bearer token for the lifetime of the process."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token

    def clear_token(self) -> None:
        self._token = None


class ConsoleNavigatorAdapter(NavigatorPort):
    """Records sign-in requests; a console has no login page to redirect to."""

    def __init__(self):
        self.login_requested = False

    def redirect_to_login(self) -> None:
        self.login_requested = True
        logger.warning("Re-authentication required: set a fresh AUDIT_API_TOKEN and run again.")

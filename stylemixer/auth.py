"""Credential availability and the gate in front of every remote call."""

import getpass
import logging
import os
import sys
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from stylemixer.config import GEMINI_API_KEY_ENV
from stylemixer.errors import AuthConnectError

logger = logging.getLogger(__name__)


@dataclass
class SessionAuthState:
    """Shared auth flag, threaded through the controller and its services."""

    has_credential: bool = False


class CredentialProvider(Protocol):
    def has_credential(self) -> bool: ...

    def select_credential(self) -> None: ...

    def get_api_key(self) -> Optional[str]: ...

    def forget(self) -> None: ...


class EnvCredentialProvider:
    """Reads the API key from the environment (``.env`` is loaded by config)."""

    def __init__(self, env_var: str = GEMINI_API_KEY_ENV):
        self.env_var = env_var
        self._rejected: Optional[str] = None

    def get_api_key(self) -> Optional[str]:
        api_key = os.getenv(self.env_var)
        if not api_key or api_key == self._rejected:
            return None
        return api_key

    def has_credential(self) -> bool:
        return self.get_api_key() is not None

    def select_credential(self):
        """Re-accept the env key on an explicit reconnect.

        A wrong model name yields the same not-found error as a bad key, so a
        rejected key is only held back until the user asks to connect again.
        """
        if not os.getenv(self.env_var):
            raise AuthConnectError(
                f"Interactive key selection is not available; set {self.env_var} instead"
            )
        self._rejected = None

    def forget(self):
        # Don't reuse a key the service already rejected
        self._rejected = os.getenv(self.env_var)


class InteractiveCredentialProvider:
    """Asks for the API key on the terminal."""

    def __init__(
        self,
        prompt: Callable[[str], str] = getpass.getpass,
        interactive: Optional[Callable[[], bool]] = None,
    ):
        self._prompt = prompt
        self._interactive = interactive or sys.stdin.isatty
        self._api_key: Optional[str] = None

    def get_api_key(self) -> Optional[str]:
        return self._api_key

    def has_credential(self) -> bool:
        return self._api_key is not None

    def select_credential(self):
        if not self._interactive():
            raise AuthConnectError("Key selection needs an interactive terminal")
        api_key = self._prompt("Gemini API key: ").strip()
        if not api_key:
            raise AuthConnectError("No API key entered")
        self._api_key = api_key

    def forget(self):
        self._api_key = None


class AuthGate:
    """Checks and selects credentials, writing the result to the session state."""

    def __init__(
        self,
        provider: Optional[CredentialProvider] = None,
        state: Optional[SessionAuthState] = None,
    ):
        self.provider = provider or EnvCredentialProvider()
        self.state = state or SessionAuthState()

    def check(self) -> bool:
        self.state.has_credential = bool(self.provider.has_credential())
        return self.state.has_credential

    def connect(self):
        """Run the credential selection flow.

        Raises:
            AuthConnectError: if the flow is unavailable here. Not retried.
        """
        try:
            self.provider.select_credential()
        except AuthConnectError:
            logger.error("Credential selection unavailable")
            raise
        # A finished selection flow counts as connected
        self.state.has_credential = True
        logger.info("Credential selected")

    def invalidate(self):
        """Drop the current credential after the service rejected it."""
        self.provider.forget()
        self.state.has_credential = False
        logger.warning("Credential invalidated; reconnect required")

    def api_key(self) -> Optional[str]:
        return self.provider.get_api_key()

"""Ports for the session collaborators the engine depends on.

Token storage and navigation live outside the engine; the engine only reads
the bearer credential and, on an expired session, asks for it to be cleared
and for the user to be sent back to sign in.
"""
from abc import ABC, abstractmethod
from typing import Optional


class SessionPort(ABC):
    @abstractmethod
    def get_token(self) -> Optional[str]:
        """Return the bearer token or None when signed out."""
        raise NotImplementedError

    @abstractmethod
    def clear_token(self) -> None:
        """Drop the stored credential."""
        raise NotImplementedError


class NavigatorPort(ABC):
    @abstractmethod
    def redirect_to_login(self) -> None:
        """Send the user back to the sign-in entry point."""
        raise NotImplementedError

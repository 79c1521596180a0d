"""Error taxonomy shared by the API client and the UI."""
from __future__ import annotations


class PubError(Exception):
    """Base class for every error surfaced to a view."""


class ConfigurationError(PubError):
    """Missing account, missing secret, unreadable config."""


class UsageError(PubError):
    """Command-line arguments that cannot form a request."""


class TransportError(PubError):
    """Connection failure or timeout before a response arrived."""


class AuthError(PubError):
    """The secret could not be exchanged for an access token."""


class APIError(PubError):
    def __init__(self, status_code: int, message: str = "", code: str = "") -> None:
        self.status_code = int(status_code)
        self.message = message
        self.code = code
        super().__init__(str(self))

    def __str__(self) -> str:
        msg = self.message or "unknown error"
        if self.code:
            return f"API error ({self.status_code}): {msg} [{self.code}]"
        return f"API error ({self.status_code}): {msg}"

"""Errors raised by the credential broker.

Classification into these types happens once, in the process adapter.
"""

from __future__ import annotations

TIMEOUT_EXIT_CODE = -1


class BrokerError(Exception):
    """Base class for every error that crosses the broker boundary."""


class NotFoundError(BrokerError):
    """The referenced vault or item does not exist or is not accessible."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class AuthenticationError(BrokerError):
    """The service account token was rejected or the session is invalid."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class CommandError(BrokerError):
    """Process-level failure: timeout, missing executable, bad exit, bad output."""

    def __init__(self, message: str, exit_code: int, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr

    @property
    def timed_out(self) -> bool:
        return self.exit_code == TIMEOUT_EXIT_CODE


class InvalidItemURLError(BrokerError, ValueError):
    """An unlock request carried a URL that is not a 1Password item link."""

    def __init__(self, url: str) -> None:
        super().__init__(
            "Invalid 1Password URL. Expected format: "
            "https://start.1password.com/open/i?a=ACCOUNT&v=VAULT&i=ITEM&h=HOST"
        )
        self.url = url

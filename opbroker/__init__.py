"""
opbroker — consent-gated credential broker for the 1Password CLI.

Public API:
    CredentialBroker        → facade over the `op` executable
    OnePasswordCLI          → process adapter (timeout, error classification)
    UnlockSession           → per-broker set of explicitly unlocked items
    parse_item_url(url)     → (item_id, vault_id) from a 1Password deep link
"""

from __future__ import annotations

__version__ = "0.1.0"

from opbroker.broker import CredentialBroker, UnlockResult
from opbroker.cli_adapter import OnePasswordCLI
from opbroker.errors import (
    AuthenticationError,
    BrokerError,
    CommandError,
    InvalidItemURLError,
    NotFoundError,
)
from opbroker.session import UnlockSession
from opbroker.url_parser import parse_item_url

__all__ = [
    "AuthenticationError",
    "BrokerError",
    "CommandError",
    "CredentialBroker",
    "InvalidItemURLError",
    "NotFoundError",
    "OnePasswordCLI",
    "UnlockResult",
    "UnlockSession",
    "parse_item_url",
]

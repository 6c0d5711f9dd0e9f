"""
Centralized configuration for opbroker.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from opbroker.config import get_config
    cfg = get_config()
    print(cfg.op_binary)     # "op" or $OP_CLI_PATH
    print(cfg.cli_timeout)   # 30.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from pydantic import SecretStr

TOKEN_ENV_VAR = "OP_SERVICE_ACCOUNT_TOKEN"
DEFAULT_CLI_TIMEOUT = 30.0


@dataclass(frozen=True)
class EnvVar:
    """Describes an environment variable for startup diagnostics."""

    name: str
    description: str
    example: str = ""
    default: str = ""


REQUIRED_ENV = [
    EnvVar(
        name=TOKEN_ENV_VAR,
        description="1Password service account token for authentication",
        example="ops_...",
    ),
]

OPTIONAL_ENV = [
    EnvVar(
        name="ENABLED_TOOLGROUPS",
        description="Comma-separated list of tool groups to enable (readonly,write)",
        default="all groups enabled",
    ),
    EnvVar(
        name="SKIP_HEALTH_CHECKS",
        description="Skip health checks on startup (true/false)",
        default="false",
    ),
    EnvVar(name="OP_CLI_PATH", description="Path to the 1Password CLI", default="op"),
    EnvVar(
        name="OPBROKER_CLI_TIMEOUT",
        description="Seconds before a CLI call is killed",
        default=str(DEFAULT_CLI_TIMEOUT),
    ),
    EnvVar(name="OPBROKER_LOG_LEVEL", description="Log level for stderr", default="WARNING"),
]


@dataclass(frozen=True)
class BrokerConfig:
    """Top-level opbroker configuration."""

    service_account_token: SecretStr = field(default_factory=lambda: SecretStr(""))
    op_binary: str = "op"
    cli_timeout: float = DEFAULT_CLI_TIMEOUT
    enabled_toolgroups: str = ""
    skip_health_checks: bool = False
    log_level: str = "WARNING"
    # Names of variables that were set but could not be parsed
    invalid_env: tuple[str, ...] = ()

    @property
    def has_token(self) -> bool:
        return bool(self.service_account_token.get_secret_value())

    def missing_required(self) -> list[EnvVar]:
        """Return required variables that are not set."""
        missing = []
        if not self.has_token:
            missing.append(REQUIRED_ENV[0])
        return missing


# Singleton
_config: BrokerConfig | None = None


def get_config() -> BrokerConfig:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_timeout(value: str) -> float | None:
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def _load_from_env() -> BrokerConfig:
    """Load configuration from environment variables."""
    invalid = []
    cli_timeout = _parse_timeout(os.environ.get("OPBROKER_CLI_TIMEOUT", str(DEFAULT_CLI_TIMEOUT)))
    if cli_timeout is None:
        invalid.append("OPBROKER_CLI_TIMEOUT")
        cli_timeout = DEFAULT_CLI_TIMEOUT

    return BrokerConfig(
        service_account_token=SecretStr(os.environ.get(TOKEN_ENV_VAR, "")),
        op_binary=os.environ.get("OP_CLI_PATH", "op"),
        cli_timeout=cli_timeout,
        enabled_toolgroups=os.environ.get("ENABLED_TOOLGROUPS", ""),
        skip_health_checks=_parse_bool(os.environ.get("SKIP_HEALTH_CHECKS", "false")),
        log_level=os.environ.get("OPBROKER_LOG_LEVEL", "WARNING").upper(),
        invalid_env=tuple(invalid),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None

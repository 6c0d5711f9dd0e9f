"""
opbroker CLI — entry point for all operations.

Usage:
    opbroker mcp            # Start the MCP server (stdio transport)
    opbroker check          # Verify the CLI and token by listing vaults
    opbroker version        # Show version
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from opbroker.config import OPTIONAL_ENV, BrokerConfig, get_config

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="opbroker",
        description="opbroker — consent-gated access to 1Password items via the op CLI.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("mcp", help="Start the MCP server (stdio transport)")
    subparsers.add_parser("check", help="Verify the op CLI and service account token")
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from opbroker import __version__

        print(f"opbroker {__version__}")
        return 0

    cfg = get_config()
    _configure_logging(cfg)

    if args.command == "mcp":
        return _cmd_mcp(cfg)
    elif args.command == "check":
        return _cmd_check(cfg)
    else:
        parser.print_help()
        return 0


def _configure_logging(cfg: BrokerConfig) -> None:
    # stdout carries the MCP transport, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def validate_environment(cfg: BrokerConfig) -> bool:
    """Print guidance for missing or unparsable variables. Returns True if the env is usable."""
    if cfg.invalid_env:
        print("Invalid environment variables:", file=sys.stderr)
        for var in OPTIONAL_ENV:
            if var.name in cfg.invalid_env:
                print(f"  - {var.name}: {var.description} (default: {var.default})", file=sys.stderr)
        return False

    missing = cfg.missing_required()
    if not missing:
        if cfg.enabled_toolgroups:
            logger.warning("Tool groups filter active: %s", cfg.enabled_toolgroups)
        return True

    err = sys.stderr
    print("Missing required environment variables:", file=err)
    for var in missing:
        print(f"  - {var.name}: {var.description}", file=err)
        print(f"    Example: {var.example}", file=err)

    print("\nOptional environment variables:", file=err)
    for var in OPTIONAL_ENV:
        default = f" (default: {var.default})" if var.default else ""
        print(f"  - {var.name}: {var.description}{default}", file=err)

    print("\nExample commands:", file=err)
    for var in missing:
        print(f'  export {var.name}="{var.example}"', file=err)
    return False


async def health_check(cfg: BrokerConfig) -> int:
    """List vaults to prove the executable and token work. Returns the vault count."""
    from opbroker.broker import CredentialBroker
    from opbroker.cli_adapter import OnePasswordCLI

    broker = CredentialBroker(OnePasswordCLI.from_config(cfg))
    vaults = await broker.get_vaults()
    return len(vaults)


def _cmd_check(cfg: BrokerConfig) -> int:
    from opbroker.errors import BrokerError

    if not validate_environment(cfg):
        return 1
    try:
        count = asyncio.run(health_check(cfg))
    except BrokerError as e:
        print(f"Error: failed to connect to 1Password: {e}", file=sys.stderr)
        return 1
    print(f"OK: {count} vault(s) accessible")
    return 0


def _cmd_mcp(cfg: BrokerConfig) -> int:
    from opbroker.errors import BrokerError

    if not validate_environment(cfg):
        return 1

    if cfg.skip_health_checks:
        logger.warning("Health checks skipped (SKIP_HEALTH_CHECKS=true)")
    else:
        try:
            asyncio.run(health_check(cfg))
        except BrokerError as e:
            print(f"Error: failed to connect to 1Password: {e}", file=sys.stderr)
            return 1

    try:
        from opbroker.api.mcp import run_server
    except ImportError as e:
        print(f"Error: MCP dependencies missing: {e}", file=sys.stderr)
        print("Install with: pip install mcp", file=sys.stderr)
        return 1

    asyncio.run(run_server(cfg))
    return 0


if __name__ == "__main__":
    sys.exit(main())

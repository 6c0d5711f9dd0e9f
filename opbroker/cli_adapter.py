"""
Process adapter for the 1Password CLI (`op`).

Every broker operation maps to exactly one `op` process:
    - the service account token travels in the child environment only
    - `--format json` is appended unless the caller already asked for a format
    - stdin is closed so `op` can never block on an interactive prompt
    - a hard timeout terminates the process (no retries)
    - non-zero exits are classified from stderr into typed errors
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from typing import Any

from pydantic import SecretStr, TypeAdapter, ValidationError

from opbroker.config import DEFAULT_CLI_TIMEOUT, TOKEN_ENV_VAR, BrokerConfig, get_config
from opbroker.errors import (
    TIMEOUT_EXIT_CODE,
    AuthenticationError,
    BrokerError,
    CommandError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

FORMAT_FLAG = "--format"
FORMAT_ARGS = [FORMAT_FLAG, "json"]

# Exit code recorded when the executable could not be started at all
SPAWN_FAILED_EXIT_CODE = 127

# Seconds to wait after SIGTERM before escalating to SIGKILL
DEFAULT_KILL_GRACE = 2.0

NOT_FOUND_MARKERS = ("not found", "no item found", "isn't an item")
AUTH_MARKERS = (
    "authentication",
    "unauthorized",
    "invalid session",
    "invalid token",
    "not signed in",
)
AMBIGUOUS_MARKER = "more than one item matches"

# 1Password item and vault identifiers: 26 lowercase base32 characters
ITEM_ID_RE = re.compile(r"\b[a-z0-9]{26}\b")
ID_PLACEHOLDER = "<id>"


def scrub_ids(text: str) -> str:
    """Replace 1Password identifiers in CLI output with a placeholder."""
    return ITEM_ID_RE.sub(ID_PLACEHOLDER, text)


def classify_failure(exit_code: int, stderr: str) -> BrokerError:
    """Map a non-zero exit and its stderr text onto the error taxonomy.

    Only `.stderr` keeps the raw text. Messages are built from a copy with
    identifiers scrubbed, since an item id plus its vault id is enough to
    build an unlock URL.
    """
    text = stderr.lower()
    detail = scrub_ids(stderr.strip())
    if AMBIGUOUS_MARKER in text:
        return CommandError(
            "More than one item matches that title. Use a more specific title "
            "or restrict the lookup to one vault.",
            exit_code=exit_code,
            stderr=stderr,
        )
    if any(marker in text for marker in NOT_FOUND_MARKERS):
        return NotFoundError(detail or "Requested vault or item was not found", stderr=stderr)
    if any(marker in text for marker in AUTH_MARKERS):
        return AuthenticationError(
            detail or "1Password rejected the service account token", stderr=stderr
        )
    return CommandError(
        f"1Password CLI exited with code {exit_code}: {detail or '(no stderr)'}",
        exit_code=exit_code,
        stderr=stderr,
    )


# `op` flags whose value is the following argument
VALUE_FLAGS = frozenset(
    {"--account", "--categories", "--category", "--fields", "--tags", "--title", "--url", "--vault"}
)


def requests_format(args: list[str]) -> bool:
    """True if the argument list already selects an output format.

    Only flag positions count: the value after a flag such as `--title`
    is caller data and may itself read "--format".
    """
    skip_value = False
    for arg in args:
        if skip_value:
            skip_value = False
            continue
        if arg == FORMAT_FLAG or arg.startswith(FORMAT_FLAG + "="):
            return True
        skip_value = arg in VALUE_FLAGS
    return False


class OnePasswordCLI:
    """Run `op` subcommands and return parsed JSON output."""

    def __init__(
        self,
        token: SecretStr | str,
        *,
        binary: str = "op",
        timeout: float = DEFAULT_CLI_TIMEOUT,
        kill_grace: float = DEFAULT_KILL_GRACE,
    ) -> None:
        self._token = token if isinstance(token, SecretStr) else SecretStr(token)
        self.binary = binary
        self.timeout = timeout
        self.kill_grace = kill_grace

    @classmethod
    def from_config(cls, cfg: BrokerConfig | None = None) -> OnePasswordCLI:
        cfg = cfg or get_config()
        return cls(cfg.service_account_token, binary=cfg.op_binary, timeout=cfg.cli_timeout)

    def __repr__(self) -> str:
        return f"OnePasswordCLI(binary={self.binary!r}, timeout={self.timeout!r})"

    def build_command(self, args: list[str]) -> list[str]:
        cmd = [self.binary, *args]
        if not requests_format(args):
            cmd.extend(FORMAT_ARGS)
        return cmd

    def build_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env[TOKEN_ENV_VAR] = self._token.get_secret_value()
        return env

    async def execute(self, args: list[str], model: Any = None) -> Any:
        """Run `op <args>` and return its JSON output.

        When `model` is given (a pydantic model or a type such as
        `list[Vault]`), the payload is validated into it.

        Raises NotFoundError, AuthenticationError or CommandError.
        """
        # Only the subcommand is logged; later args may carry field values.
        subcommand = " ".join(args[:2])
        logger.debug("op %s", subcommand)

        try:
            proc = await asyncio.create_subprocess_exec(
                *self.build_command(args),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
            )
        except FileNotFoundError as e:
            raise CommandError(
                f"1Password CLI executable '{self.binary}' not found. "
                "Check that the 1Password CLI is installed and on your PATH.",
                exit_code=SPAWN_FAILED_EXIT_CODE,
            ) from e
        except OSError as e:
            raise CommandError(
                f"Failed to start 1Password CLI '{self.binary}': {e}",
                exit_code=SPAWN_FAILED_EXIT_CODE,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            try:
                await self._terminate(proc)
            finally:
                _kill(proc)
            logger.warning("op %s timed out after %ss", subcommand, self.timeout)
            raise CommandError(
                f"1Password CLI timed out after {self.timeout:g}s",
                exit_code=TIMEOUT_EXIT_CODE,
            ) from None
        except asyncio.CancelledError:
            _kill(proc)
            await proc.wait()
            raise

        err_text = stderr.decode("utf-8", errors="replace")
        if proc.returncode:
            logger.debug("op %s failed with exit code %s", subcommand, proc.returncode)
            raise classify_failure(proc.returncode, err_text)

        out_text = stdout.decode("utf-8", errors="replace")
        try:
            payload = json.loads(out_text)
        except json.JSONDecodeError as e:
            raise CommandError(
                f"Failed to parse 1Password CLI output as JSON: {e}",
                exit_code=0,
                stderr=err_text,
            ) from e

        if model is None:
            return payload
        try:
            return TypeAdapter(model).validate_python(payload)
        except ValidationError as e:
            raise CommandError(
                f"Unexpected 1Password CLI output for 'op {subcommand}': "
                f"{e.error_count()} validation error(s)",
                exit_code=0,
                stderr=err_text,
            ) from e

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL if the process outlives the grace period."""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace)
        except TimeoutError:
            _kill(proc)
            await proc.wait()


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass

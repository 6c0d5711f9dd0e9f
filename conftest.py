"""
Root-level shared test fixtures.

Provides a scripted stand-in for the `op` CLI so broker and MCP tests run
without 1Password. Responses mirror real `op --format json` output,
including the ids and extra keys the broker must strip.
"""

from __future__ import annotations

import copy
from typing import Any

import pytest
from pydantic import TypeAdapter

from opbroker.cli_adapter import OnePasswordCLI
from opbroker.config import reset_config
from opbroker.errors import NotFoundError

VAULTS = [
    {"id": "vault-1", "name": "Personal", "content_version": 12},
    {"id": "vault-2", "name": "Work", "content_version": 3},
]

ITEMS = [
    {
        "id": "item-1",
        "title": "Test Login",
        "category": "LOGIN",
        "vault": {"id": "vault-1", "name": "Personal"},
        "additional_information": "testuser",
        "version": 2,
        "last_edited_by": "USER123",
    },
    {
        "id": "item-2",
        "title": "API Key",
        "category": "SECURE_NOTE",
        "vault": {"id": "vault-1", "name": "Personal"},
        "tags": ["api", "production"],
    },
    {
        "id": "item-3",
        "title": "Work Email",
        "category": "LOGIN",
        "vault": {"id": "vault-2", "name": "Work"},
        "tags": ["api"],
    },
]

ITEM_DETAILS = {
    "item-1": {
        "id": "item-1",
        "title": "Test Login",
        "category": "LOGIN",
        "vault": {"id": "vault-1", "name": "Personal"},
        "sections": [{"id": "add more"}],
        "fields": [
            {"id": "username", "type": "STRING", "purpose": "USERNAME", "label": "username", "value": "testuser", "reference": "op://Personal/Test Login/username"},
            {"id": "password", "type": "CONCEALED", "purpose": "PASSWORD", "label": "password", "value": "testpass123", "reference": "op://Personal/Test Login/password"},
            {"id": "TOTP_abc", "type": "OTP", "label": "one-time password", "value": "otpauth://totp/x?secret=ABC", "totp": "123456", "section": {"id": "add more"}},
        ],
        "urls": [{"href": "https://example.com", "primary": True}],
        "created_at": "2024-01-02T03:04:05Z",
        "updated_at": "2024-02-03T04:05:06Z",
    },
    "item-2": {
        "id": "item-2",
        "title": "API Key",
        "category": "SECURE_NOTE",
        "vault": {"id": "vault-1", "name": "Personal"},
        "tags": ["api", "production"],
        "fields": [
            {"id": "notesPlain", "type": "STRING", "purpose": "NOTES", "label": "notesPlain", "value": "sk-abc123xyz"},
        ],
    },
    "item-3": {
        "id": "item-3",
        "title": "Work Email",
        "category": "LOGIN",
        "vault": {"id": "vault-2", "name": "Work"},
        "tags": ["api"],
        "fields": [
            {"id": "username", "type": "STRING", "purpose": "USERNAME", "label": "username", "value": "work@example.com"},
            {"id": "password", "type": "CONCEALED", "purpose": "PASSWORD", "label": "password", "value": "workpass456"},
        ],
    },
}


class ScriptedOnePasswordCLI(OnePasswordCLI):
    """OnePasswordCLI that answers from in-memory data instead of spawning `op`.

    Every call is recorded in `calls` so tests can assert on the arguments.
    """

    def __init__(self) -> None:
        super().__init__("ops_test_token", binary="op")
        self.vaults = copy.deepcopy(VAULTS)
        self.items = copy.deepcopy(ITEMS)
        self.details = copy.deepcopy(ITEM_DETAILS)
        self.calls: list[list[str]] = []
        self.failures: dict[str, Exception] = {}

    async def execute(self, args: list[str], model: Any = None) -> Any:
        self.calls.append(list(args))
        key = " ".join(args[:2])
        if key in self.failures:
            raise self.failures[key]
        payload = self._respond(args)
        return TypeAdapter(model).validate_python(payload) if model is not None else payload

    def _respond(self, args: list[str]) -> Any:
        opts = _options(args)
        if args[:2] == ["vault", "list"]:
            return self.vaults
        if args[:2] == ["item", "list"]:
            items = self.items
            if "--vault" in opts:
                items = [i for i in items if i["vault"]["id"] == opts["--vault"]]
            if "--tags" in opts:
                items = [i for i in items if opts["--tags"] in (i.get("tags") or [])]
            return items
        if args[:2] == ["item", "get"]:
            ref = args[2]
            found = self.details.get(ref) or next(
                (d for d in self.details.values() if d["title"] == ref), None
            )
            if found is None or ("--vault" in opts and found["vault"]["id"] != opts["--vault"]):
                raise NotFoundError(f'"{ref}" isn\'t an item in any vault.')
            return found
        if args[:2] == ["item", "create"]:
            return self._create(args, opts)
        raise AssertionError(f"unexpected op call: {args}")

    def _create(self, args: list[str], opts: dict[str, str]) -> dict:
        item_id = f"item-{100 + len(self.details)}"
        vault = next(v for v in self.vaults if v["id"] == opts["--vault"])
        fields = []
        for assignment in (a for a in args if "=" in a and not a.startswith("--")):
            name, value = assignment.split("=", 1)
            ftype = "CONCEALED" if name == "password" else "STRING"
            fields.append({"id": name, "type": ftype, "label": name, "value": value})
        details = {
            "id": item_id,
            "title": opts["--title"],
            "category": "LOGIN" if opts["--category"] == "Login" else "SECURE_NOTE",
            "vault": {"id": vault["id"], "name": vault["name"]},
            "fields": fields,
        }
        if "--tags" in opts:
            details["tags"] = opts["--tags"].split(",")
        if "--url" in opts:
            details["urls"] = [{"href": opts["--url"], "primary": True}]
        self.details[item_id] = details
        return details


def _options(args: list[str]) -> dict[str, str]:
    opts = {}
    for i, arg in enumerate(args):
        if arg.startswith("--") and i + 1 < len(args):
            opts[arg] = args[i + 1]
    return opts


def make_item_url(item_id: str, vault_id: str) -> str:
    return f"https://start.1password.com/open/i?a=ACCT&v={vault_id}&i={item_id}&h=my.1password.com"


@pytest.fixture
def scripted_cli() -> ScriptedOnePasswordCLI:
    return ScriptedOnePasswordCLI()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove broker env vars that leak between tests."""
    for key in [
        "OP_SERVICE_ACCOUNT_TOKEN",
        "OP_CLI_PATH",
        "OPBROKER_CLI_TIMEOUT",
        "OPBROKER_LOG_LEVEL",
        "ENABLED_TOOLGROUPS",
        "SKIP_HEALTH_CHECKS",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def item_url():
    """Build a 1Password deep link for an item."""
    return make_item_url

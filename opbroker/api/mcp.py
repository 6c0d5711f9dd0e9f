"""
MCP Server for the 1Password credential broker.

Provides a Model Context Protocol (MCP) interface so external models can
browse vaults and, after explicit consent, read credentials. Runs locally
with stdio transport.

Architecture:
    MCP Client -> stdio -> this server -> CredentialBroker -> op CLI

Tools (7):
    - readonly: onepassword_list_vaults, onepassword_list_items,
      onepassword_get_item, onepassword_list_items_by_tag,
      onepassword_unlock_item
    - write: onepassword_create_login, onepassword_create_secure_note

Tool groups are selected with ENABLED_TOOLGROUPS (e.g. "readonly"). The
write group also grants the read tools, since creating an item usually
starts with looking up a vault.

Start:
    opbroker mcp
"""

from __future__ import annotations

import json
import logging
from typing import Any

from opbroker.broker import CredentialBroker
from opbroker.config import BrokerConfig, get_config
from opbroker.errors import BrokerError
from opbroker.url_parser import is_absolute_url

logger = logging.getLogger(__name__)

READONLY = "readonly"
WRITE = "write"
ALL_TOOL_GROUPS = [READONLY, WRITE]

URL_HELP = (
    "A 1Password URL (e.g., https://start.1password.com/open/i?a=...&v=...&i=...&h=...). "
    'Copy this from the 1Password app by right-clicking an item and selecting "Copy Link".'
)

UNLOCK_DESCRIPTION = (
    "Unlock a 1Password item for credential access by providing its 1Password URL. "
    "By default get_item redacts sensitive fields (passwords, one-time codes, concealed values). "
    "After unlocking, get_item returns the full credentials for that item. "
    "Items stay unlocked only for the current session (reset on server restart)."
)


def parse_enabled_toolgroups(value: str | None) -> list[str]:
    """Parse a comma-separated tool group list. Empty or all-invalid means all groups."""
    if not value:
        return list(ALL_TOOL_GROUPS)

    requested = [g.strip().lower() for g in value.split(",")]
    valid = [g for g in requested if g in ALL_TOOL_GROUPS]
    if not valid:
        logger.warning(
            'No valid tool groups found in "%s". Valid groups: %s',
            value,
            ", ".join(ALL_TOOL_GROUPS),
        )
        return list(ALL_TOOL_GROUPS)
    return valid


# ─── Tool Definitions ────────────────────────────────────────────────

_TOOLS: list[tuple[dict, list[str]]] = [
    ({"name": "onepassword_list_vaults", "description": "List all accessible 1Password vaults.", "inputSchema": {"type": "object", "properties": {}}}, [READONLY, WRITE]),
    ({"name": "onepassword_list_items", "description": "List items in a vault. Returns titles, categories and tags only; no ids or secrets.", "inputSchema": {"type": "object", "properties": {"vaultId": {"type": "string", "description": "Vault ID (from onepassword_list_vaults)"}}, "required": ["vaultId"]}}, [READONLY, WRITE]),
    ({"name": "onepassword_get_item", "description": "Get an item's details by title or ID. Sensitive fields are redacted unless the item was unlocked with onepassword_unlock_item.", "inputSchema": {"type": "object", "properties": {"itemId": {"type": "string", "description": "Item title or ID"}, "vaultId": {"type": "string", "description": "Optional vault ID to narrow the lookup"}}, "required": ["itemId"]}}, [READONLY, WRITE]),
    ({"name": "onepassword_list_items_by_tag", "description": "List items carrying a tag, optionally within one vault. Returns titles, categories and tags only.", "inputSchema": {"type": "object", "properties": {"tag": {"type": "string", "description": "Tag to filter by"}, "vaultId": {"type": "string", "description": "Optional vault ID"}}, "required": ["tag"]}}, [READONLY, WRITE]),
    ({"name": "onepassword_unlock_item", "description": UNLOCK_DESCRIPTION, "inputSchema": {"type": "object", "properties": {"url": {"type": "string", "description": URL_HELP}}, "required": ["url"]}}, [READONLY, WRITE]),
    ({"name": "onepassword_create_login", "description": "Create a login item in a vault.", "inputSchema": {"type": "object", "properties": {"vaultId": {"type": "string", "description": "Vault ID"}, "title": {"type": "string", "description": "Item title"}, "username": {"type": "string", "description": "Username"}, "password": {"type": "string", "description": "Password"}, "url": {"type": "string", "description": "Website URL"}, "tags": {"type": "array", "items": {"type": "string"}, "description": "Tags"}}, "required": ["vaultId", "title", "username", "password"]}}, [WRITE]),
    ({"name": "onepassword_create_secure_note", "description": "Create a secure note in a vault.", "inputSchema": {"type": "object", "properties": {"vaultId": {"type": "string", "description": "Vault ID"}, "title": {"type": "string", "description": "Note title"}, "content": {"type": "string", "description": "Note content"}, "tags": {"type": "array", "items": {"type": "string"}, "description": "Tags"}}, "required": ["vaultId", "title", "content"]}}, [WRITE]),
]


def get_tool_definitions(groups: list[str] | None = None) -> list[dict]:
    """Return the MCP tool definitions enabled for the given groups."""
    enabled = groups if groups is not None else list(ALL_TOOL_GROUPS)
    return [d for d, tool_groups in _TOOLS if any(g in enabled for g in tool_groups)]


# ─── Tool Handlers ───────────────────────────────────────────────────


def _missing(arguments: dict[str, Any], *names: str) -> dict[str, str] | None:
    absent = [n for n in names if not arguments.get(n)]
    if absent:
        return {"error": f"Missing required argument(s): {', '.join(absent)}"}
    return None


async def handle_tool_call(
    broker: CredentialBroker,
    name: str,
    arguments: dict[str, Any],
    groups: list[str] | None = None,
) -> dict[str, Any]:
    """Handle an MCP tool call and return a JSON-serialisable result."""
    enabled = {d["name"] for d in get_tool_definitions(groups)}
    if name not in enabled:
        return {"error": f"Unknown tool: {name}"}

    try:
        return await _dispatch(broker, name, arguments)
    except BrokerError as e:
        logger.info("%s failed: %s", name, type(e).__name__)
        return {"error": str(e), "errorType": type(e).__name__}
    except Exception as e:
        logger.exception("Unexpected error in %s", name)
        return {"error": f"Unexpected error: {e}"}


async def _dispatch(broker: CredentialBroker, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    if name == "onepassword_list_vaults":
        vaults = await broker.get_vaults()
        return {"vaults": [v.model_dump() for v in vaults], "count": len(vaults)}

    elif name == "onepassword_list_items":
        if err := _missing(arguments, "vaultId"):
            return err
        items = await broker.list_items(arguments["vaultId"])
        return {"items": [i.model_dump(exclude_none=True) for i in items], "count": len(items)}

    elif name == "onepassword_get_item":
        if err := _missing(arguments, "itemId"):
            return err
        item = await broker.get_item(arguments["itemId"], arguments.get("vaultId"))
        return item.model_dump(mode="json", exclude_none=True)

    elif name == "onepassword_list_items_by_tag":
        if err := _missing(arguments, "tag"):
            return err
        items = await broker.list_items_by_tag(arguments["tag"], arguments.get("vaultId"))
        return {"items": [i.model_dump(exclude_none=True) for i in items], "count": len(items)}

    elif name == "onepassword_unlock_item":
        if err := _missing(arguments, "url"):
            return err
        result = await broker.unlock_item(arguments["url"])
        return {
            "title": result.title,
            "alreadyUnlocked": result.already_unlocked,
            "unlockedCount": result.unlocked_count,
            "message": result.message,
        }

    elif name == "onepassword_create_login":
        if err := _missing(arguments, "vaultId", "title", "username", "password"):
            return err
        url = arguments.get("url")
        if url and not is_absolute_url(url):
            return {"error": f"Invalid URL: {url}"}
        item = await broker.create_login(
            arguments["vaultId"],
            arguments["title"],
            arguments["username"],
            arguments["password"],
            url,
            arguments.get("tags"),
        )
        return item.model_dump(mode="json", exclude_none=True)

    elif name == "onepassword_create_secure_note":
        if err := _missing(arguments, "vaultId", "title", "content"):
            return err
        item = await broker.create_secure_note(
            arguments["vaultId"],
            arguments["title"],
            arguments["content"],
            arguments.get("tags"),
        )
        return item.model_dump(mode="json", exclude_none=True)

    return {"error": f"Unknown tool: {name}"}


# ─── MCP Server ──────────────────────────────────────────────────────


class ToolCallError(Exception):
    """Raised from `call_tool` so the MCP SDK reports the result with `isError`."""


def render_result(result: dict[str, Any]) -> str:
    """Serialise a handler result, raising ToolCallError for error payloads."""
    text = json.dumps(result, default=str)
    if "error" in result:
        raise ToolCallError(text)
    return text


def create_server(broker: CredentialBroker, groups: list[str] | None = None):
    """Create and configure the MCP server."""
    import mcp.types as types
    from mcp.server import Server

    server = Server("opbroker")

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=d["name"], description=d["description"], inputSchema=d["inputSchema"])
            for d in get_tool_definitions(groups)
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
        result = await handle_tool_call(broker, name, arguments or {}, groups)
        return [types.TextContent(type="text", text=render_result(result))]

    return server


async def run_server(cfg: BrokerConfig | None = None, broker: CredentialBroker | None = None):
    """Run the MCP server with stdio transport."""
    from mcp.server.stdio import stdio_server

    from opbroker.cli_adapter import OnePasswordCLI

    cfg = cfg or get_config()
    broker = broker or CredentialBroker(OnePasswordCLI.from_config(cfg))
    groups = parse_enabled_toolgroups(cfg.enabled_toolgroups)

    server = create_server(broker, groups)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())

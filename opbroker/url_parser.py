"""Decode 1Password "open item" deep links.

    https://start.1password.com/open/i?a=ACCOUNT&v=VAULT&i=ITEM&h=HOST

Only `v` (vault id) and `i` (item id) are required. The parser never raises;
malformed input yields None.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from opbroker.models import OnePasswordURLRef


def is_absolute_url(value: object) -> bool:
    """True for a well-formed URL with both a scheme and a host."""
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value.strip())
        return bool(parts.scheme and parts.netloc and parts.hostname)
    except ValueError:
        return False


def parse_item_url(url: object) -> OnePasswordURLRef | None:
    """Extract (item_id, vault_id) from a deep link, or None if it is not one."""
    if not isinstance(url, str) or not is_absolute_url(url):
        return None

    try:
        query = parse_qs(urlsplit(url.strip()).query)
    except ValueError:
        return None

    vault_id = _first(query, "v")
    item_id = _first(query, "i")
    if not vault_id or not item_id:
        return None
    return OnePasswordURLRef(item_id=item_id, vault_id=vault_id)


def _first(query: dict[str, list[str]], key: str) -> str:
    values = query.get(key) or []
    return values[0].strip() if values else ""

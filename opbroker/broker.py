"""
Credential Broker — consent-gated access to 1Password vault items.

Composes the CLI adapter, sanitizer, URL parser and unlock session:

    get_vaults()                     → list[Vault]
    list_items(vault_id)             → list[SafeItem]          (ids stripped)
    list_items_by_tag(tag, vault_id) → list[SafeItem]          (ids stripped)
    get_item(id_or_title, vault_id)  → SafeItemDetails         (redacted unless unlocked)
    unlock_item(url)                 → UnlockResult            (consent flow)
    create_login(...)                → ItemDetails             (pass-through)
    create_secure_note(...)          → ItemDetails             (pass-through)

Nothing here retries: NotFoundError and AuthenticationError need a fix by
the caller or operator, and timeouts are left to the caller to re-issue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opbroker.cli_adapter import OnePasswordCLI
from opbroker.errors import BrokerError, InvalidItemURLError
from opbroker.models import ItemDetails, RawItem, SafeItem, SafeItemDetails, Vault
from opbroker.sanitize import sanitize_item_details, sanitize_items
from opbroker.session import UnlockSession
from opbroker.url_parser import parse_item_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockResult:
    """Confirmation returned by the consent flow."""

    title: str | None
    already_unlocked: bool
    unlocked_count: int

    @property
    def message(self) -> str:
        if self.already_unlocked:
            name = f'"{self.title}"' if self.title else "The item"
            return f"{name} is already unlocked. Use get_item to retrieve its credentials."
        name = self.title or "Unknown"
        return (
            f"Item unlocked: {name}. Use get_item with the title \"{name}\" "
            f"to retrieve the full credentials. "
            f"Currently {self.unlocked_count} item(s) unlocked in this session."
        )


class CredentialBroker:
    """Facade over the 1Password CLI with list sanitization and unlock gating."""

    def __init__(self, cli: OnePasswordCLI, session: UnlockSession | None = None) -> None:
        self.cli = cli
        self.session = session if session is not None else UnlockSession()

    # ── Reads ──

    async def get_vaults(self) -> list[Vault]:
        return await self.cli.execute(["vault", "list"], model=list[Vault])

    async def list_items(self, vault_id: str) -> list[SafeItem]:
        raws = await self.cli.execute(["item", "list", "--vault", vault_id], model=list[RawItem])
        return sanitize_items(raws)

    async def list_items_by_tag(self, tag: str, vault_id: str | None = None) -> list[SafeItem]:
        args = ["item", "list", "--tags", tag]
        if vault_id:
            args.extend(["--vault", vault_id])
        raws = await self.cli.execute(args, model=list[RawItem])
        return sanitize_items(raws)

    async def get_item(self, item_id_or_title: str, vault_id: str | None = None) -> SafeItemDetails:
        """Fetch an item by id or title.

        Sensitive field values are redacted unless the resolved item id was
        unlocked in this session.
        """
        details = await self._fetch_item(item_id_or_title, vault_id)
        return sanitize_item_details(details, unlocked=self.session.is_item_unlocked(details.id))

    # ── Consent ──

    async def unlock_item(self, url: str) -> UnlockResult:
        """Unlock an item for full credential access from its 1Password link.

        The title lookup is cosmetic: if it fails the item is unlocked anyway
        and the error surfaces on the next get_item.
        """
        ref = parse_item_url(url)
        if ref is None:
            raise InvalidItemURLError(url)

        already = self.session.is_item_unlocked(ref.item_id)
        title = await self._try_fetch_title(ref.item_id, ref.vault_id)
        if not already:
            self.session.unlock_item(ref.item_id)

        return UnlockResult(
            title=title,
            already_unlocked=already,
            unlocked_count=self.session.unlocked_count(),
        )

    def is_item_unlocked(self, item_id: str) -> bool:
        return self.session.is_item_unlocked(item_id)

    # ── Writes ──

    async def create_login(
        self,
        vault_id: str,
        title: str,
        username: str,
        password: str,
        url: str | None = None,
        tags: list[str] | None = None,
    ) -> ItemDetails:
        args = ["item", "create", "--category", "Login", "--title", title, "--vault", vault_id]
        if url:
            args.extend(["--url", url])
        if tags:
            args.extend(["--tags", ",".join(tags)])
        args.extend([f"username={username}", f"password={password}"])
        return await self.cli.execute(args, model=ItemDetails)

    async def create_secure_note(
        self,
        vault_id: str,
        title: str,
        content: str,
        tags: list[str] | None = None,
    ) -> ItemDetails:
        args = [
            "item", "create", "--category", "Secure Note", "--title", title, "--vault", vault_id,
        ]
        if tags:
            args.extend(["--tags", ",".join(tags)])
        args.append(f"notesPlain={content}")
        return await self.cli.execute(args, model=ItemDetails)

    # ── Internals ──

    async def _fetch_item(self, item_id_or_title: str, vault_id: str | None) -> ItemDetails:
        args = ["item", "get", item_id_or_title]
        if vault_id:
            args.extend(["--vault", vault_id])
        return await self.cli.execute(args, model=ItemDetails)

    async def _try_fetch_title(self, item_id: str, vault_id: str) -> str | None:
        try:
            details = await self._fetch_item(item_id, vault_id)
        except BrokerError as e:
            logger.debug("Title lookup for unlock failed: %s", type(e).__name__)
            return None
        return details.title

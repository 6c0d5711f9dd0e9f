"""
Unlock session — the set of items a caller has explicitly unlocked.

An item starts locked and becomes unlocked only through the consent flow
(CredentialBroker.unlock_item). There is no re-lock. State lives in memory
for the lifetime of the owning broker and is never persisted, so every
process restart requires fresh consent.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class UnlockSession:
    """Per-broker set of unlocked item ids."""

    def __init__(self) -> None:
        self._unlocked: set[str] = set()

    def unlock_item(self, item_id: str) -> None:
        """Mark an item as unlocked. Idempotent."""
        if item_id not in self._unlocked:
            self._unlocked.add(item_id)
            logger.info("Item unlocked (%d unlocked this session)", len(self._unlocked))

    def is_item_unlocked(self, item_id: str) -> bool:
        return item_id in self._unlocked

    def unlocked_count(self) -> int:
        return len(self._unlocked)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._unlocked

    def __len__(self) -> int:
        return len(self._unlocked)

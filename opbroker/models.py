"""
Data models for vault contents.

Raw models mirror the JSON emitted by `op ... --format json` and stay inside
the broker. Safe models are what callers receive: they carry no identifiers
and reject unknown keys.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

REDACTED = "[REDACTED]"


class Vault(BaseModel):
    id: str
    name: str


class VaultRef(BaseModel):
    """Vault reference embedded in item output."""

    id: str
    name: str = ""


class SafeVaultRef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str


class RawItem(BaseModel):
    """An item as listed by `op item list` (internal only)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    title: str
    category: str
    vault: VaultRef | None = None
    tags: list[str] | None = None
    additional_information: str | None = Field(
        default=None,
        validation_alias=AliasChoices("additional_information", "additionalInformation"),
    )


class SafeItem(BaseModel):
    """List-view item returned to callers. Never includes an id."""

    model_config = ConfigDict(extra="forbid")

    title: str
    category: str
    vault: SafeVaultRef | None = None
    tags: list[str] | None = None


class ItemSection(BaseModel):
    id: str
    label: str | None = None


class SafeItemSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: str | None = None


class ItemField(BaseModel):
    id: str
    type: str
    purpose: str | None = None
    label: str = ""
    value: str | None = None
    reference: str | None = None
    section: ItemSection | None = None


class SafeItemField(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    purpose: str | None = None
    label: str = ""
    value: str | None = None
    reference: str | None = None
    section: SafeItemSection | None = None


class ItemURL(BaseModel):
    href: str
    label: str | None = None
    primary: bool | None = None


class ItemDetails(BaseModel):
    """Full item as returned by `op item get` (internal only)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    category: str
    vault: VaultRef
    tags: list[str] | None = None
    fields: list[ItemField] | None = None
    sections: list[ItemSection] | None = None
    urls: list[ItemURL] | None = None
    created_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("updated_at", "updatedAt")
    )


class SafeItemDetails(BaseModel):
    """Detail view returned to callers: ids stripped, secrets redacted unless unlocked."""

    model_config = ConfigDict(extra="forbid")

    title: str
    category: str
    vault: SafeVaultRef
    tags: list[str] | None = None
    fields: list[SafeItemField] | None = None
    sections: list[SafeItemSection] | None = None
    urls: list[ItemURL] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OnePasswordURLRef(BaseModel):
    """Item reference decoded from a 1Password deep link."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    vault_id: str

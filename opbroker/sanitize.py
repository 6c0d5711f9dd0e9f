"""
Sanitization — allow-list transforms from internal CLI models to caller views.

Safe models are built field by field from the raw ones, never by copying a
dict, so any key `op` adds in the future is dropped rather than leaked.
"""

from __future__ import annotations

from opbroker.models import (
    REDACTED,
    ItemDetails,
    ItemField,
    ItemSection,
    ItemURL,
    RawItem,
    SafeItem,
    SafeItemDetails,
    SafeItemField,
    SafeItemSection,
    SafeVaultRef,
)

SENSITIVE_FIELD_TYPES = frozenset({"CONCEALED", "OTP", "TOTP", "SSHKEY", "CREDIT_CARD_NUMBER"})
SENSITIVE_FIELD_PURPOSES = frozenset({"PASSWORD"})


def is_sensitive_field(field: ItemField) -> bool:
    if field.type.upper() in SENSITIVE_FIELD_TYPES:
        return True
    return bool(field.purpose) and field.purpose.upper() in SENSITIVE_FIELD_PURPOSES


def sanitize_item(raw: RawItem) -> SafeItem:
    """List view: title, category, vault name and tags only."""
    return SafeItem(
        title=raw.title,
        category=raw.category,
        vault=SafeVaultRef(name=raw.vault.name) if raw.vault else None,
        tags=list(raw.tags) if raw.tags is not None else None,
    )


def sanitize_items(raws: list[RawItem]) -> list[SafeItem]:
    return [sanitize_item(r) for r in raws]


def _section(section: ItemSection | None) -> SafeItemSection | None:
    if section is None:
        return None
    return SafeItemSection(label=section.label)


def _field(field: ItemField, unlocked: bool) -> SafeItemField:
    value = field.value
    if value is not None and not unlocked and is_sensitive_field(field):
        value = REDACTED
    return SafeItemField(
        type=field.type,
        purpose=field.purpose,
        label=field.label,
        value=value,
        reference=field.reference,
        section=_section(field.section),
    )


def _url(url: ItemURL) -> ItemURL:
    return ItemURL(href=url.href, label=url.label, primary=url.primary)


def sanitize_item_details(details: ItemDetails, unlocked: bool) -> SafeItemDetails:
    """Detail view: every id stripped; sensitive values redacted unless unlocked.

    Redacted fields stay in the output with their label so callers can see
    that a secret exists without seeing it.
    """
    return SafeItemDetails(
        title=details.title,
        category=details.category,
        vault=SafeVaultRef(name=details.vault.name),
        tags=list(details.tags) if details.tags is not None else None,
        fields=[_field(f, unlocked) for f in details.fields] if details.fields is not None else None,
        sections=(
            [SafeItemSection(label=s.label) for s in details.sections]
            if details.sections is not None
            else None
        ),
        urls=[_url(u) for u in details.urls] if details.urls is not None else None,
        created_at=details.created_at,
        updated_at=details.updated_at,
    )

"""Contact deduplication by phone number.

Phone is the only matching signal. Without a phone the export always
creates a new contact, and a failed lookup counts as "no match" unless the
strict strategy is enabled.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from ..config import settings
from ..schemas.property import NOT_AVAILABLE

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str | None) -> str | None:
    """E.164-style normalization with a US default for bare 10-digit numbers."""
    if not phone or phone.strip() == NOT_AVAILABLE:
        return None
    digits = _NON_DIGITS.sub("", phone)
    if not digits:
        return None
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def phone_filter(phone: str) -> list[dict[str, Any]]:
    return [{"field": "phone", "operator": "eq", "value": phone}]


async def find_existing_contact(
    ghl,
    location_id: str,
    name: str | None,
    phone: str | None,
    *,
    strict: bool | None = None,
) -> dict[str, Any] | None:
    """Return the location's contact with the same normalized phone, if any.

    ``name`` is accepted for logging only. With ``strict`` (default from
    ``settings.dedup_fail_closed``) lookup errors propagate instead of being
    treated as "no existing contact".
    """
    formatted = normalize_phone(phone)
    if not formatted:
        logger.debug("No phone for %r; skipping contact search", name)
        return None

    strict = settings.dedup_fail_closed if strict is None else strict
    try:
        resp = await ghl.contacts.search(
            filters=phone_filter(formatted),
            page=1,
            page_limit=1,
            location_id=location_id,
        )
    except Exception as e:
        if strict:
            raise
        logger.warning("Contact search failed for %s in %s, assuming new: %s", formatted, location_id, e)
        return None

    contacts = resp.get("contacts") if isinstance(resp, dict) else None
    if isinstance(contacts, list) and contacts and isinstance(contacts[0], dict):
        return contacts[0]
    return None

from __future__ import annotations

import re

CONTACT_TYPES = ("email", "phone")

_NON_DIGITS = re.compile(r"[^0-9]")


def coerce_contact_type(value: str | None) -> str:
    """Anything that is not explicitly a phone number is treated as email."""
    return value if value in CONTACT_TYPES else "email"


def normalize_contact(value: str, type: str) -> str:
    """Canonical lookup key for a contact: digits only for phones, lowercase for email."""
    trimmed = value.strip()
    if not trimmed:
        return ""
    if type == "phone":
        return _NON_DIGITS.sub("", trimmed)
    return trimmed.lower()

"""
Customer phone normalization.

The normalized phone is the primary key of the customers table, so every
code path that reads or writes a customer must go through normalize_phone.
Two spellings of the same number that normalize differently would silently
fork one customer into two records.

Rules (applied in order, after stripping every non-digit):
- 12 digits starting with the country prefix -> drop prefix, prepend "0"
  (201060558591 -> 01060558591)
- 10 digits not starting with "0" -> prepend "0"
  (1060558591 -> 01060558591)
- anything else is returned unchanged
"""
from __future__ import annotations

import re

from flask import current_app, has_app_context

DEFAULT_COUNTRY_PREFIX = "20"
MIN_PHONE_DIGITS = 10

_NON_DIGITS = re.compile(r"\D")


def _country_prefix() -> str:
    if has_app_context():
        return current_app.config.get("PHONE_COUNTRY_PREFIX") or DEFAULT_COUNTRY_PREFIX
    return DEFAULT_COUNTRY_PREFIX


def normalize_phone(raw: str | None, country_prefix: str | None = None) -> str:
    if not raw:
        return ""
    prefix = country_prefix or _country_prefix()
    cleaned = _NON_DIGITS.sub("", str(raw))

    if cleaned.startswith(prefix) and len(cleaned) == 12:
        return "0" + cleaned[len(prefix):]
    if len(cleaned) == 10 and not cleaned.startswith("0"):
        return "0" + cleaned
    return cleaned


def is_valid_phone(phone: str | None) -> bool:
    """A normalized phone usable as a customer key."""
    return bool(phone) and len(normalize_phone(phone)) >= MIN_PHONE_DIGITS

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


DATE_KEY_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def business_today() -> date:
    """
    Current calendar date in the configured business timezone.

    Daily stats, barcodes and order ids all roll over on this date.
    """
    tz_name = "UTC"
    if has_app_context():
        tz_name = current_app.config.get("BUSINESS_TIMEZONE") or "UTC"
    return datetime.now(ZoneInfo(tz_name)).date()


def date_key(day: date) -> str:
    """YYYY-MM-DD key; lexicographic order matches calendar order."""
    return day.strftime(DATE_KEY_FORMAT)


def parse_date_key(value: str) -> date:
    """Parse a YYYY-MM-DD key. Raises ValueError on malformed input."""
    return datetime.strptime(value.strip(), DATE_KEY_FORMAT).date()


def date_stamp(day: date) -> str:
    """DDMMYYYY stamp used as the prefix of barcodes and order ids."""
    return day.strftime("%d%m%Y")

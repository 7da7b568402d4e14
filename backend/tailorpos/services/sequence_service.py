# Overview: Per-day sequential codes for barcodes and service order ids.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Counter
from ..time_utils import business_today, date_key, date_stamp
from ..validation import ConflictError, ValidationError


SCOPE_BARCODE = "barcode"
SCOPE_ORDER = "order"
SEQUENCE_SCOPES = (SCOPE_BARCODE, SCOPE_ORDER)

SEQUENCE_PAD = 3


def next_sequence(scope: str, day: date) -> int:
    """
    Atomically allocate the next number for (scope, day).

    Runs inside the caller's transaction and never commits: the number is
    only consumed if the dependent business write commits with it. Two
    transactions inserting the first row of a day at once surface as
    ConflictError, and the caller's retry loop re-runs the whole unit.
    """
    if scope not in SEQUENCE_SCOPES:
        raise ValidationError(f"Unknown sequence scope: {scope}")

    key = date_key(day)
    stmt = (
        update(Counter)
        .where(Counter.purpose == scope, Counter.date == key)
        .values(count=Counter.count + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        return (
            db.session.query(Counter.count)
            .filter_by(purpose=scope, date=key)
            .scalar()
        )

    db.session.add(Counter(purpose=scope, date=key, count=1))
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Sequence {scope}/{key} was initialised concurrently") from exc
    return 1


def format_code(day: date, seq: int) -> str:
    """DDMMYYYY followed by the sequence, zero-padded to three digits."""
    return f"{date_stamp(day)}{seq:0{SEQUENCE_PAD}d}"


def allocate_code(scope: str, day: date | None = None) -> str:
    day = day or business_today()
    return format_code(day, next_sequence(scope, day))

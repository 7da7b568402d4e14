from datetime import date

import pytest

from tailorpos.extensions import db
from tailorpos.models import Counter
from tailorpos.services.sequence_service import (
    SCOPE_BARCODE,
    SCOPE_ORDER,
    allocate_code,
    format_code,
    next_sequence,
)
from tailorpos.validation import ValidationError


def test_first_allocation_creates_counter(db_session):
    day = date(2026, 3, 7)
    assert next_sequence(SCOPE_BARCODE, day) == 1
    db_session.commit()

    counter = db_session.get(Counter, (SCOPE_BARCODE, "2026-03-07"))
    assert counter.count == 1


def test_allocations_are_sequential_per_scope_and_day(db_session):
    day = date(2026, 3, 7)
    assert [next_sequence(SCOPE_ORDER, day) for _ in range(3)] == [1, 2, 3]
    # Other scope and other day start over
    assert next_sequence(SCOPE_BARCODE, day) == 1
    assert next_sequence(SCOPE_ORDER, date(2026, 3, 8)) == 1
    db_session.commit()


def test_rollback_releases_the_number(db_session):
    day = date(2026, 3, 7)
    next_sequence(SCOPE_ORDER, day)
    db_session.commit()

    assert next_sequence(SCOPE_ORDER, day) == 2
    db_session.rollback()

    assert next_sequence(SCOPE_ORDER, day) == 2


def test_format_code():
    assert format_code(date(2026, 3, 7), 1) == "07032026001"
    assert format_code(date(2026, 12, 31), 42) == "31122026042"
    assert format_code(date(2026, 12, 31), 1234) == "311220261234"


def test_allocate_code(db_session):
    day = date(2026, 1, 15)
    assert allocate_code(SCOPE_BARCODE, day) == "15012026001"
    assert allocate_code(SCOPE_BARCODE, day) == "15012026002"
    db.session.commit()


def test_unknown_scope_rejected(db_session):
    with pytest.raises(ValidationError):
        next_sequence("invoice", date(2026, 1, 1))

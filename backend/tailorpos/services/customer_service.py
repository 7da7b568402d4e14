# Overview: Customer directory keyed by normalized phone; purchase aggregates and bulk import.

from __future__ import annotations

import csv
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer
from ..phone_utils import is_valid_phone, normalize_phone
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry
from .pagination import (
    ListSession,
    Page,
    decode_cursor,
    keyset_filter,
    keyset_order,
    page_from_rows,
    prefix_filter,
    resolve_page_size,
)

CUSTOMER_SORT_FIELDS = ("created_at", "name", "order_count", "total_spent_cents")

# Spreadsheet layout: after one header row, each row holds repeated
# [id, name, phone] column blocks.
IMPORT_BLOCK_WIDTH = 3


def _require_phone(phone: str | None) -> str:
    normalized = normalize_phone(phone)
    if not is_valid_phone(normalized):
        raise ValidationError("Invalid phone number", details={"phone": phone})
    return normalized


def get_customer(phone: str) -> Customer:
    customer = db.session.get(Customer, normalize_phone(phone))
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def lookup_customer(phone: str) -> Customer | None:
    """POS lookup while typing a phone: None when not on file."""
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return db.session.get(Customer, normalized)


def create_customer(name: str, phone: str) -> Customer:
    def _op():
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Customer name is required")
        key = _require_phone(phone)
        if db.session.get(Customer, key) is not None:
            raise ValidationError("A customer with this phone already exists", details={"phone": key})

        customer = Customer(phone=key, name=clean_name, order_count=0, total_spent_cents=0)
        db.session.add(customer)
        try:
            db.session.commit()
        except IntegrityError as exc:
            raise ConflictError("Customer was created concurrently") from exc
        return customer

    return run_with_retry(_op)


def update_customer(phone: str, name: str) -> Customer:
    """Only the name is editable: the phone is the record's identity."""
    def _op():
        customer = get_customer(phone)
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Customer name is required")
        customer.name = clean_name
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(phone: str) -> None:
    def _op():
        customer = get_customer(phone)
        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)


def record_purchase(phone: str, name: str | None, total_cents: int, *, at=None) -> bool:
    """
    Atomic increment-upsert of a customer's purchase aggregates.

    Runs inside the caller's transaction (no commit). Existing customer:
    order_count + 1, total_spent + total in one UPDATE. Otherwise insert with
    order_count=1, total_spent=total. Two first purchases racing on the same
    phone surface as ConflictError so the caller retries the whole unit,
    which then takes the increment path.

    Returns True when the customer was created.
    """
    at = at or utcnow()
    stmt = (
        update(Customer)
        .where(Customer.phone == phone)
        .values(
            order_count=Customer.order_count + 1,
            total_spent_cents=Customer.total_spent_cents + total_cents,
            last_order_at=at,
        )
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount:
        return False

    clean_name = (name or "").strip()
    if not clean_name:
        raise ValidationError("Name is required for a new customer", details={"phone": phone})
    db.session.add(Customer(
        phone=phone,
        name=clean_name,
        order_count=1,
        total_spent_cents=total_cents,
        last_order_at=at,
    ))
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Customer {phone} was created concurrently") from exc
    return True


@dataclass
class CustomerFilters:
    search: str | None = None
    sort_field: str = "created_at"
    sort_dir: str = "desc"

    def validate(self) -> None:
        if self.sort_field not in CUSTOMER_SORT_FIELDS:
            raise ValidationError(f"sort must be one of: {', '.join(CUSTOMER_SORT_FIELDS)}")
        if self.sort_dir not in ("asc", "desc"):
            raise ValidationError("direction must be asc or desc")
        if self.search is not None:
            self.search = self.search.strip() or None


def list_customers(filters: CustomerFilters | None = None, cursor: str | None = None, page_size: int | None = None) -> Page:
    """
    Customers, newest first by default.

    A digit-only search is a phone prefix, anything else a name prefix;
    searching pages by the searched field ascending.
    """
    filters = filters or CustomerFilters()
    filters.validate()
    size = resolve_page_size(page_size, "CUSTOMER_PAGE_SIZE")

    q = db.session.query(Customer)
    if filters.search:
        field = "phone" if filters.search.isdigit() else "name"
        col = getattr(Customer, field)
        q = q.filter(prefix_filter(col, filters.search))
        descending = False
    else:
        field = filters.sort_field
        col = getattr(Customer, field)
        descending = filters.sort_dir == "desc"

    if cursor:
        last_value, last_phone = decode_cursor(cursor)
        q = q.filter(keyset_filter(col, Customer.phone, last_value, last_phone, descending=descending))
    rows = q.order_by(*keyset_order(col, Customer.phone, descending=descending)).limit(size + 1).all()
    return page_from_rows(rows, size, key=lambda c: (getattr(c, field), c.phone))


class CustomerListSession(ListSession):
    def __init__(self, filters: CustomerFilters | None = None, page_size: int | None = None):
        super().__init__(page_size=page_size)
        self.filters = filters or CustomerFilters()

    def _fetch(self, cursor: str | None) -> Page:
        return list_customers(self.filters, cursor=cursor, page_size=self.page_size)


def customer_stats() -> dict:
    count, spent, orders = db.session.query(
        func.count(Customer.phone),
        func.coalesce(func.sum(Customer.total_spent_cents), 0),
        func.coalesce(func.sum(Customer.order_count), 0),
    ).one()
    return {
        "customer_count": int(count),
        "total_spent_cents": int(spent),
        "total_orders": int(orders),
    }


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet readers hand phones back as floats
        value = int(value)
    return str(value).strip()


def _parse_import_rows(rows) -> tuple[list[tuple[str, str]], int]:
    # phone -> name; a phone listed twice keeps its last name
    entries: dict[str, str] = {}
    skipped = 0
    for row_index, row in enumerate(rows):
        if row_index == 0:
            continue  # header
        row = list(row or [])
        for j in range(0, len(row), IMPORT_BLOCK_WIDTH):
            block = [_cell(v) for v in row[j:j + IMPORT_BLOCK_WIDTH]]
            block += [""] * (IMPORT_BLOCK_WIDTH - len(block))
            _, name, raw_phone = block
            if not name and not raw_phone:
                continue
            phone = normalize_phone(raw_phone)
            if not name or not is_valid_phone(phone):
                skipped += 1
                continue
            entries[phone] = name
    return [(name, phone) for phone, name in entries.items()], skipped


def import_customers(rows) -> dict:
    """
    Bulk merge-upsert from spreadsheet rows.

    New phones are inserted with zero aggregates. Existing customers only get
    their name refreshed: order_count / total_spent_cents are kept. The whole
    import is one transaction, flushed every IMPORT_BATCH_SIZE records.
    """
    entries, skipped = _parse_import_rows(rows)
    if not entries:
        raise ValidationError("No valid customer rows found", details={"skipped": skipped})

    batch_size = max(int(current_app.config.get("IMPORT_BATCH_SIZE", 500)), 1)

    def _op():
        created = updated = 0
        pending = 0
        for name, phone in entries:
            customer = db.session.get(Customer, phone)
            if customer is None:
                db.session.add(Customer(phone=phone, name=name, order_count=0, total_spent_cents=0))
                created += 1
            else:
                customer.name = name
                updated += 1
            pending += 1
            if pending >= batch_size:
                db.session.flush()
                pending = 0
        try:
            db.session.commit()
        except IntegrityError as exc:
            raise ConflictError("Customers changed during import") from exc
        return created, updated

    created, updated = run_with_retry(_op)
    result = {
        "processed": created + updated + skipped,
        "created": created,
        "updated": updated,
        "skipped": skipped,
    }
    current_app.logger.info("Customer import finished: %s", result)
    return result


def import_customers_csv(stream) -> dict:
    """stream: text file-like object holding CSV in the spreadsheet layout."""
    return import_customers(csv.reader(stream))

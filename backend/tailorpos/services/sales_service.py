# Overview: Sales ledger: newest-first listing, detail lookup and service-order status updates.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from flask import current_app

from ..extensions import db
from ..models import Sale, SALE_KIND_GOODS, SALE_KIND_SERVICE_ORDER
from ..phone_utils import normalize_phone
from ..time_utils import parse_date_key, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry
from .pagination import (
    ListSession,
    Page,
    decode_cursor,
    keyset_filter,
    keyset_order,
    page_from_rows,
    resolve_page_size,
)

STATUS_COMPLETED = "completed"  # goods sales; final on creation
STATUS_RECEIVED = "received"
STATUS_IN_PROGRESS = "in_progress"
STATUS_READY = "ready"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"

SALE_STATUSES = (
    STATUS_COMPLETED,
    STATUS_RECEIVED,
    STATUS_IN_PROGRESS,
    STATUS_READY,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
)

# Service order lifecycle. Anything not listed is refused.
STATUS_TRANSITIONS = {
    STATUS_RECEIVED: {STATUS_IN_PROGRESS, STATUS_CANCELLED},
    STATUS_IN_PROGRESS: {STATUS_READY, STATUS_CANCELLED},
    STATUS_READY: {STATUS_DELIVERED},
    STATUS_DELIVERED: set(),
    STATUS_CANCELLED: set(),
}


@dataclass
class SalesFilters:
    branch_id: int | None = None
    kind: str | None = None
    status: str | None = None
    customer_phone: str | None = None
    start: date | None = None  # inclusive, by created_at (UTC)
    end: date | None = None  # inclusive

    def validate(self) -> None:
        if self.kind in ("", "all"):
            self.kind = None
        if self.kind is not None and self.kind not in (SALE_KIND_GOODS, SALE_KIND_SERVICE_ORDER):
            raise ValidationError("kind must be goods or service_order")
        if self.status in ("", "all"):
            self.status = None
        if self.status is not None and self.status not in SALE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")
        if self.customer_phone:
            self.customer_phone = normalize_phone(self.customer_phone)
        else:
            self.customer_phone = None
        self.start = _coerce_date(self.start, "start")
        self.end = _coerce_date(self.end, "end")
        if self.start and self.end and self.start > self.end:
            raise ValidationError("start must be on or before end")


def _coerce_date(value, name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_date_key(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")


def list_sales(filters: SalesFilters | None = None, cursor: str | None = None, page_size: int | None = None) -> Page:
    """Newest first: keyset on (created_at desc, id desc)."""
    filters = filters or SalesFilters()
    filters.validate()
    size = resolve_page_size(page_size, "SALES_PAGE_SIZE")

    q = db.session.query(Sale)
    if filters.branch_id is not None:
        q = q.filter(Sale.branch_id == filters.branch_id)
    if filters.kind is not None:
        q = q.filter(Sale.kind == filters.kind)
    if filters.status is not None:
        q = q.filter(Sale.status == filters.status)
    if filters.customer_phone is not None:
        q = q.filter(Sale.customer_phone == filters.customer_phone)
    if filters.start is not None:
        q = q.filter(Sale.created_at >= datetime.combine(filters.start, time.min))
    if filters.end is not None:
        q = q.filter(Sale.created_at < datetime.combine(filters.end + timedelta(days=1), time.min))

    if cursor:
        last_value, last_id = decode_cursor(cursor)
        q = q.filter(keyset_filter(Sale.created_at, Sale.id, last_value, last_id, descending=True))
    rows = q.order_by(*keyset_order(Sale.created_at, Sale.id, descending=True)).limit(size + 1).all()
    return page_from_rows(rows, size, key=lambda s: (s.created_at, s.id))


class SalesListSession(ListSession):
    """Paging state of one sales ledger view (see InventoryListSession)."""

    def __init__(self, filters: SalesFilters | None = None, page_size: int | None = None):
        super().__init__(page_size=page_size)
        self.filters = filters or SalesFilters()

    def set_filters(self, filters: SalesFilters) -> Page:
        self.filters = filters
        return self.first()

    def _fetch(self, cursor: str | None) -> Page:
        return list_sales(self.filters, cursor=cursor, page_size=self.page_size)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def customer_orders(phone: str, limit: int = 50) -> list[Sale]:
    """A customer's most recent sales, newest first."""
    key = normalize_phone(phone)
    if not key:
        raise ValidationError("phone is required")
    limit = max(1, min(int(limit), current_app.config.get("MAX_PAGE_SIZE", 100)))
    return (
        db.session.query(Sale)
        .filter(Sale.customer_phone == key)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )


def update_sale_status(sale_id: int, new_status: str, operator: str | None = None, expected_version: int | None = None) -> Sale:
    """
    Move a service order along its lifecycle.

    Goods sales are final when written. The write is version-checked, so two
    operators advancing the same order concurrently cannot both succeed.
    """
    def _op():
        sale = get_sale(sale_id)
        if sale.kind != SALE_KIND_SERVICE_ORDER:
            raise ValidationError("Only service orders have a status lifecycle", details={"sale_id": sale_id})
        if new_status not in STATUS_TRANSITIONS:
            raise ValidationError(f"Unknown status: {new_status}")
        if expected_version is not None and sale.version_id != int(expected_version):
            raise ConflictError("Sale was modified by another operator; reload and retry")

        allowed = STATUS_TRANSITIONS.get(sale.status, set())
        if new_status not in allowed:
            raise ValidationError(
                f"Cannot change status from {sale.status} to {new_status}",
                details={"from": sale.status, "to": new_status, "allowed": sorted(allowed)},
            )

        previous = sale.status
        sale.status = new_status
        sale.status_updated_at = utcnow()
        db.session.commit()
        current_app.logger.info(
            "Sale %s status %s -> %s by %s", sale.id, previous, new_status, operator or "unknown"
        )
        return sale

    attempts = 1 if expected_version is not None else None
    return run_with_retry(_op, attempts=attempts)

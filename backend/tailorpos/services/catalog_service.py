from __future__ import annotations

from ..extensions import db
from ..models import Service
from ..validation import NotFoundError, SERVICE_TYPES, ValidationError, enforce_rules_service
from .concurrency import run_with_retry
from .pagination import Page, decode_cursor, keyset_filter, keyset_order, page_from_rows, resolve_page_size

SERVICE_MUTABLE_FIELDS = {"type", "name", "price_cents"}


def create_service(type: str, name: str, price_cents: int) -> Service:
    def _op():
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Service name is required")
        enforce_rules_service({"type": type, "price_cents": price_cents})

        service = Service(type=type, name=clean_name, price_cents=price_cents)
        db.session.add(service)
        db.session.commit()
        return service

    return run_with_retry(_op)


def get_service(service_id: int) -> Service:
    service = db.session.get(Service, service_id)
    if service is None:
        raise NotFoundError("Service not found")
    return service


def list_services(service_type: str | None = None, cursor: str | None = None, page_size: int | None = None) -> Page:
    """Catalog entries newest first, optionally for one service type."""
    if service_type in ("", "all"):
        service_type = None
    if service_type is not None and service_type not in SERVICE_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(SERVICE_TYPES)}")
    size = resolve_page_size(page_size, "INVENTORY_PAGE_SIZE")

    q = db.session.query(Service)
    if service_type is not None:
        q = q.filter(Service.type == service_type)
    if cursor:
        last_value, last_id = decode_cursor(cursor)
        q = q.filter(keyset_filter(Service.created_at, Service.id, last_value, last_id, descending=True))
    rows = q.order_by(*keyset_order(Service.created_at, Service.id, descending=True)).limit(size + 1).all()
    return page_from_rows(rows, size, key=lambda s: (s.created_at, s.id))


def update_service(service_id: int, patch: dict) -> Service:
    def _op():
        service = get_service(service_id)
        enforce_rules_service(patch)
        if "name" in patch:
            patch["name"] = (patch["name"] or "").strip()
            if not patch["name"]:
                raise ValidationError("Service name is required")
        for k, v in patch.items():
            if k in SERVICE_MUTABLE_FIELDS:
                setattr(service, k, v)
        db.session.commit()
        return service

    return run_with_retry(_op)


def delete_service(service_id: int) -> None:
    def _op():
        service = get_service(service_id)
        db.session.delete(service)
        db.session.commit()

    run_with_retry(_op)

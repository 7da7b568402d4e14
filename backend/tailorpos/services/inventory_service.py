# Overview: Inventory maintenance: add, edit, delete, scanner lookup and stock summary.
"""
Inventory invariants (authoritative)

- quantity is a stored integer and never goes below zero. Sales and
  transfers change it only through guarded_decrement / increment_quantity,
  which are single UPDATE statements evaluated inside the caller's
  transaction; the CHECK constraint backs this up.
- Overwrite edits (update_item) are optimistic: callers may pass the
  version_id they read and lose with ConflictError if someone else wrote
  in between.
- Every item gets a day-sequence barcode allocated in the same transaction
  that inserts it.
"""
from __future__ import annotations

from sqlalchemy import case, func, update

from flask import current_app

from ..extensions import db
from ..models import Branch, InventoryItem
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_inventory_item,
)
from .concurrency import run_with_retry
from .sequence_service import SCOPE_BARCODE, allocate_code

INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "type", "unit", "color",
        "quantity", "min_quantity",
        "cost_cents", "selling_price_cents",
        "branch_id",
    },
    required_on_create={"name", "type"},
)

INVENTORY_MUTABLE_FIELDS = INVENTORY_POLICY.writable_fields


def _resolve_branch(branch_id) -> Branch | None:
    if branch_id is None:
        return None
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise ValidationError("Branch not found", details={"branch_id": branch_id})
    return branch


def guarded_decrement(item_id: int, qty: int) -> None:
    """
    quantity -= qty, only if quantity >= qty at execution time.

    Zero affected rows means the precondition no longer holds (a concurrent
    commit consumed the stock) or the row is gone.
    """
    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.quantity >= qty)
        .values(
            quantity=InventoryItem.quantity - qty,
            version_id=InventoryItem.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 1:
        return
    exists = db.session.query(InventoryItem.id).filter(InventoryItem.id == item_id).first()
    if exists is None:
        raise NotFoundError(f"Inventory item {item_id} no longer exists")
    raise ConflictError(f"Stock for item {item_id} changed during commit")


def increment_quantity(item_id: int, qty: int) -> None:
    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(
            quantity=InventoryItem.quantity + qty,
            version_id=InventoryItem.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount != 1:
        raise NotFoundError(f"Inventory item {item_id} no longer exists")


def create_item(fields: dict) -> InventoryItem:
    def _op():
        data = {k: v for k, v in fields.items() if k in INVENTORY_MUTABLE_FIELDS}
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        data["name"] = name
        data.setdefault("type", "raw")
        enforce_rules_inventory_item(data)

        branch = _resolve_branch(data.get("branch_id"))

        item = InventoryItem(**data)
        item.branch_name = branch.name if branch else None
        item.barcode = allocate_code(SCOPE_BARCODE)

        db.session.add(item)
        db.session.commit()
        return item

    item = run_with_retry(_op)
    current_app.logger.info("Inventory item %s created (barcode %s)", item.id, item.barcode)
    return item


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def update_item(item_id: int, patch: dict, expected_version: int | None = None) -> InventoryItem:
    """
    Overwrite editable fields (including quantity, for stocktakes).

    With expected_version the edit is a compare-and-set: a mismatch raises
    ConflictError immediately and is not retried.
    """
    def _op():
        item = get_item(item_id)
        if expected_version is not None and item.version_id != int(expected_version):
            raise ConflictError("Item was modified by another operator; reload and retry")

        data = {k: v for k, v in patch.items() if k in INVENTORY_MUTABLE_FIELDS}
        if "name" in data:
            data["name"] = (data["name"] or "").strip()
            if not data["name"]:
                raise ValidationError("name cannot be blank")

        if data.get("type", item.type) == "raw" and data.get("selling_price_cents") is None:
            # Raw materials are never sold directly
            data["selling_price_cents"] = None
        enforce_rules_inventory_item(data, item_type=item.type)

        if "branch_id" in data and data["branch_id"] != item.branch_id:
            branch = _resolve_branch(data["branch_id"])
            item.branch_name = branch.name if branch else None

        for k, v in data.items():
            setattr(item, k, v)

        db.session.commit()
        return item

    attempts = 1 if expected_version is not None else None
    return run_with_retry(_op, attempts=attempts)


def delete_item(item_id: int) -> None:
    def _op():
        item = get_item(item_id)
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Inventory item %s deleted", item_id)


def lookup_by_barcode(code: str, branch_id: int | None = None) -> InventoryItem:
    """Scanner lookup. Barcodes are not globally unique: the oldest match wins."""
    code = (code or "").strip()
    if not code:
        raise ValidationError("barcode is required")
    q = db.session.query(InventoryItem).filter(InventoryItem.barcode == code)
    if branch_id is not None:
        q = q.filter(InventoryItem.branch_id == branch_id)
    item = q.order_by(InventoryItem.id.asc()).first()
    if item is None:
        raise NotFoundError(f"No item with barcode {code}")
    return item


def inventory_summary(branch_id: int | None = None) -> dict:
    low = case((InventoryItem.quantity <= InventoryItem.min_quantity, 1), else_=0)
    q = db.session.query(
        func.count(InventoryItem.id),
        func.coalesce(func.sum(InventoryItem.quantity), 0),
        func.coalesce(func.sum(InventoryItem.quantity * InventoryItem.cost_cents), 0),
        func.coalesce(func.sum(low), 0),
    )
    if branch_id is not None:
        q = q.filter(InventoryItem.branch_id == branch_id)
    item_count, total_quantity, total_value, low_count = q.one()
    return {
        "branch_id": branch_id,
        "item_count": int(item_count),
        "total_quantity": int(total_quantity),
        "total_value_cents": int(total_value),
        "low_stock_count": int(low_count),
    }

# backend/tailorpos/services/transfer_service.py
"""
Cross-branch stock transfer.

One transaction moves `qty` units of an item to another branch:
1. guarded decrement of the source item
2. increment of the equivalent item at the destination (same name, type,
   unit and color), or a clone of the source with quantity = qty and a
   freshly allocated barcode when none exists yet
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Branch, InventoryItem
from ..validation import ValidationError
from .concurrency import run_with_retry
from .inventory_service import get_item, guarded_decrement, increment_quantity
from .sequence_service import SCOPE_BARCODE, allocate_code


class TransferError(ValidationError):
    """Raised when a transfer request is invalid."""


@dataclass
class TransferResult:
    source: InventoryItem
    destination: InventoryItem
    qty: int
    created_destination: bool

    def to_dict(self) -> dict:
        return {
            "qty": self.qty,
            "created_destination": self.created_destination,
            "source": self.source.to_dict(),
            "destination": self.destination.to_dict(),
        }


def _find_equivalent(source: InventoryItem, branch_id: int) -> InventoryItem | None:
    return (
        db.session.query(InventoryItem)
        .filter(
            InventoryItem.branch_id == branch_id,
            InventoryItem.name == source.name,
            InventoryItem.type == source.type,
            InventoryItem.unit.is_(None) if source.unit is None else InventoryItem.unit == source.unit,
            InventoryItem.color.is_(None) if source.color is None else InventoryItem.color == source.color,
        )
        .order_by(InventoryItem.id.asc())
        .first()
    )


def transfer_item(item_id: int, to_branch_id: int, qty: int) -> TransferResult:
    def _op() -> TransferResult:
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise TransferError("qty must be a positive integer")

        source = get_item(item_id)
        destination_branch = db.session.get(Branch, to_branch_id)
        if destination_branch is None:
            raise TransferError("Destination branch not found", details={"to_branch_id": to_branch_id})
        if source.branch_id == to_branch_id:
            raise TransferError("Cannot transfer to the same branch")
        if qty > source.quantity:
            raise TransferError(
                f"Insufficient stock: {source.name}",
                details={"item_id": source.id, "requested_quantity": qty, "on_hand": source.quantity},
            )

        target = _find_equivalent(source, to_branch_id)

        guarded_decrement(source.id, qty)
        created = target is None
        if created:
            target = InventoryItem(
                name=source.name,
                type=source.type,
                unit=source.unit,
                color=source.color,
                quantity=qty,
                min_quantity=source.min_quantity,
                cost_cents=source.cost_cents,
                selling_price_cents=source.selling_price_cents,
                branch_id=destination_branch.id,
                branch_name=destination_branch.name,
                barcode=allocate_code(SCOPE_BARCODE),
            )
            db.session.add(target)
        else:
            increment_quantity(target.id, qty)

        db.session.commit()
        return TransferResult(source=source, destination=target, qty=qty, created_destination=created)

    result = run_with_retry(_op)
    current_app.logger.info(
        "Transferred %s x item %s to branch %s (destination item %s)",
        result.qty, result.source.id, to_branch_id, result.destination.id,
    )
    return result

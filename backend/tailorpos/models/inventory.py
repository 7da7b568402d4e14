from __future__ import annotations

from ..extensions import db
from tailorpos.time_utils import to_utc_z, utcnow


class InventoryItem(db.Model):
    """
    Stock record for one raw material or finished good at one branch.

    QUANTITY INVARIANT: quantity never goes below zero. Every decrement is a
    guarded UPDATE (quantity >= n) inside the caller's transaction, backed by
    a CHECK constraint.

    BARCODE: day-sequence code (DDMMYYYY + NNN). Unique per day sequence,
    not enforced globally (transfers clone items with a fresh code).
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonneg"),
        db.Index("ix_inventory_items_branch_type", "branch_id", "type"),
        db.Index("ix_inventory_items_barcode", "barcode"),
        db.Index("ix_inventory_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, default="raw")  # raw, finished
    unit = db.Column(db.String(32), nullable=True)
    color = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_quantity = db.Column(db.Integer, nullable=False, default=0)

    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=True)  # finished goods only

    barcode = db.Column(db.String(32), nullable=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    # Denormalized for list views and sale records
    branch_name = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    branch = db.relationship("Branch", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "unit": self.unit,
            "color": self.color,
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "is_low_stock": self.is_low_stock,
            "cost_cents": self.cost_cents,
            "selling_price_cents": self.selling_price_cents,
            "barcode": self.barcode,
            "branch_id": self.branch_id,
            "branch_name": self.branch_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

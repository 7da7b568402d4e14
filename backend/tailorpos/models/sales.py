from __future__ import annotations

from ..extensions import db
from tailorpos.time_utils import to_utc_z, utcnow


SALE_KIND_GOODS = "goods"
SALE_KIND_SERVICE_ORDER = "service_order"


class Sale(db.Model):
    """
    Immutable record of one checkout.

    Written exactly once, inside the same transaction that decrements stock
    and bumps customer / daily aggregates. Afterwards only `status` may
    change, and only for service orders (see sales_service.STATUS_TRANSITIONS).

    Walk-in sales carry the walk-in sentinel in customer_name/customer_phone.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("client_token", name="uq_sales_client_token"),
        db.Index("ix_sales_created_at_id", "created_at", "id"),
        db.Index("ix_sales_customer_phone", "customer_phone"),
        db.Index("ix_sales_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, default=SALE_KIND_GOODS, index=True)

    # Human-readable order code (DDMMYYYYNNN), service orders only
    order_id = db.Column(db.String(32), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    # All amounts in cents
    total_amount_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    remaining_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, index=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)
    branch_name = db.Column(db.String(120), nullable=True)
    user = db.Column(db.String(64), nullable=True)  # operator username

    delivery_date = db.Column(db.String(10), nullable=True)  # YYYY-MM-DD
    delivery_time = db.Column(db.String(5), nullable=True)  # HH:MM
    notes = db.Column(db.Text, nullable=True)

    # Idempotency key supplied by the client for one checkout attempt
    client_token = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    status_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "SaleLine",
        backref=db.backref("sale", lazy=True),
        lazy=True,
        order_by="SaleLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "order_id": self.order_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "total_amount_cents": self.total_amount_cents,
            "total_cost_cents": self.total_cost_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "status": self.status,
            "branch_id": self.branch_id,
            "branch_name": self.branch_name,
            "user": self.user,
            "delivery_date": self.delivery_date,
            "delivery_time": self.delivery_time,
            "notes": self.notes,
            "item_count": len(self.lines),
            "created_at": to_utc_z(self.created_at),
            "status_updated_at": to_utc_z(self.status_updated_at) if self.status_updated_at else None,
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """One cart entry: a finished product or a catalog service."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False)  # product, service
    ref_id = db.Column(db.Integer, nullable=False)  # inventory item id or service id
    name = db.Column(db.String(255), nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    materials = db.relationship(
        "SaleLineMaterial",
        backref=db.backref("line", lazy=True),
        lazy=True,
        order_by="SaleLineMaterial.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "ref_id": self.ref_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "qty": self.qty,
            "line_total_cents": self.line_total_cents,
            "used_materials": [m.to_dict() for m in self.materials],
        }


class SaleLineMaterial(db.Model):
    """Raw material consumed by a service line (qty_per_unit x line qty)."""
    __tablename__ = "sale_line_materials"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_line_id = db.Column(db.Integer, db.ForeignKey("sale_lines.id"), nullable=False, index=True)

    material_id = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    qty_per_unit = db.Column(db.Integer, nullable=False)
    total_qty = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "material_id": self.material_id,
            "name": self.name,
            "unit": self.unit,
            "qty_per_unit": self.qty_per_unit,
            "total_qty": self.total_qty,
            "unit_cost_cents": self.unit_cost_cents,
        }

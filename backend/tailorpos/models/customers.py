from __future__ import annotations

from ..extensions import db
from tailorpos.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer keyed by normalized phone number.

    The phone IS the primary key: there is no synthetic id, so at most one
    record can exist per phone. Always pass phones through
    phone_utils.normalize_phone before touching this table.

    order_count / total_spent_cents are denormalized aggregates maintained by
    atomic increments at checkout, never by read-modify-write.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_created_at", "created_at"),
    )

    phone = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    order_count = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    last_order_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "phone": self.phone,
            "name": self.name,
            "order_count": self.order_count,
            "total_spent_cents": self.total_spent_cents,
            "last_order_at": to_utc_z(self.last_order_at) if self.last_order_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

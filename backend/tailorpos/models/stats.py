from __future__ import annotations

from ..extensions import db
from tailorpos.time_utils import to_utc_z


class DailyStat(db.Model):
    """
    Per-day sales aggregate, keyed by YYYY-MM-DD.

    Only ever merge-incremented by checkout; never overwritten wholesale.
    Reports sum these rows instead of scanning sales.
    """
    __tablename__ = "daily_stats"

    date = db.Column(db.String(10), primary_key=True)
    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    order_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "total_sales_cents": self.total_sales_cents,
            "total_cost_cents": self.total_cost_cents,
            "order_count": self.order_count,
            "updated_at": to_utc_z(self.updated_at),
        }


class Counter(db.Model):
    """
    Gapless per-day sequence (barcodes, order ids).

    Incremented only inside the transaction that consumes the number, so a
    rolled-back business write also rolls back the allocation.
    """
    __tablename__ = "counters"

    purpose = db.Column(db.String(32), primary_key=True)
    date = db.Column(db.String(10), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "purpose": self.purpose,
            "date": self.date,
            "count": self.count,
            "updated_at": to_utc_z(self.updated_at),
        }

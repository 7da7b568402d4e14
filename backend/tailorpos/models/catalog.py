from __future__ import annotations

from ..extensions import db
from tailorpos.time_utils import to_utc_z, utcnow


class Service(db.Model):
    """Catalog entry for the service checkout flow (tailoring, repair, dry cleaning)."""
    __tablename__ = "services"
    __table_args__ = (
        db.Index("ix_services_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)  # tailoring, repair, dry_clean
    name = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "price_cents": self.price_cents,
            "created_at": to_utc_z(self.created_at),
        }

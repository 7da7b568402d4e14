from __future__ import annotations

from ..extensions import db
from tailorpos.time_utils import to_utc_z


class Branch(db.Model):
    """
    A physical location: a selling store or a stock-holding warehouse.

    Inventory items, sales and operators are partitioned by branch.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_branches_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(16), nullable=False, default="store")  # store, warehouse

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
        }

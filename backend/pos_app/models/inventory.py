from __future__ import annotations

from ..extensions import db
from pos_app.time_utils import to_utc_z, utcnow

LEDGER_REASONS = ("initial", "sale", "restock", "adjustment")


class InventoryEntry(db.Model):
    """
    Append-only stock ledger.

    INVARIANT: for every product, the sum of quantity_changed over its
    entries (replayed in id order from a zero baseline) equals
    Product.stock_quantity. Rows are never updated or deleted.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.CheckConstraint(
            "reason IN ('initial', 'sale', 'restock', 'adjustment')",
            name="ck_inventory_reason",
        ),
        db.CheckConstraint("quantity_changed != 0", name="ck_inventory_nonzero"),
        db.Index("ix_inventory_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Signed: negative for sales
    quantity_changed = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(16), nullable=False, index=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    note = db.Column(db.String(255), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("ledger_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_changed": self.quantity_changed,
            "reason": self.reason,
            "transaction_id": self.transaction_id,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

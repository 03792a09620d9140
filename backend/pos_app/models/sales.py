from __future__ import annotations

from ..extensions import db
from pos_app.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("cash", "card", "e_wallet")


class Transaction(db.Model):
    """
    A committed sale.

    Created together with its details, ledger entries and receipt in one
    unit of work (see services/checkout_service.py). There is no update or
    void path: rows are immutable once committed.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint(
            "payment_method IN ('cash', 'card', 'e_wallet')",
            name="ck_transactions_payment_method",
        ),
        db.CheckConstraint("total_price_cents >= 0", name="ck_transactions_total_non_negative"),
        # Reports and history pages filter by date
        db.Index("ix_transactions_date", "transaction_date"),
        db.Index("ix_transactions_user_date", "user_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Server-computed sum of detail subtotals
    total_price_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)

    # Server-assigned at creation
    transaction_date = db.Column(db.DateTime(), nullable=False)

    user = db.relationship("User", backref=db.backref("transactions", lazy=True))

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "total_price_cents": self.total_price_cents,
            "payment_method": self.payment_method,
            "transaction_date": to_utc_z(self.transaction_date),
            "receipt": self.receipt.to_dict() if self.receipt else None,
        }
        if include_details:
            data["details"] = [d.to_dict() for d in self.details]
        return data


class TransactionDetail(db.Model):
    """
    One line of a transaction.

    subtotal_cents is a snapshot of quantity * unit price at sale time and is
    never recomputed from the product's current price.
    """
    __tablename__ = "transaction_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_details_quantity_positive"),
        db.Index("ix_transaction_details_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("details", lazy=True, order_by="TransactionDetail.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class Receipt(db.Model):
    """Proof of sale, 1:1 with a transaction."""
    __tablename__ = "receipts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, unique=True)
    receipt_number = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(), nullable=False, default=utcnow, server_default=db.func.now())

    transaction = db.relationship("Transaction", backref=db.backref("receipt", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "receipt_number": self.receipt_number,
            "created_at": to_utc_z(self.created_at),
        }

# Overview: Receipt numbering and creation for committed sales.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Receipt, Transaction
from pos_app.time_utils import epoch_millis


def format_receipt_number(transaction_id: int, issued_at, prefix: str | None = None) -> str:
    """
    INV-<transaction id>-<epoch millis>.

    The transaction id alone makes the number unique; the timestamp keeps it
    human-meaningful. receipts.receipt_number also carries a unique constraint.
    """
    if prefix is None:
        prefix = current_app.config.get("RECEIPT_NUMBER_PREFIX", "INV")
    return f"{prefix}-{transaction_id}-{epoch_millis(issued_at)}"


def mint_receipt(transaction: Transaction) -> Receipt:
    """Create the receipt for a flushed transaction inside the caller's unit of work."""
    if transaction.id is None:
        raise ValueError("transaction must be flushed before minting a receipt")

    receipt = Receipt(
        transaction_id=transaction.id,
        receipt_number=format_receipt_number(transaction.id, transaction.transaction_date),
    )
    db.session.add(receipt)
    db.session.flush()
    return receipt

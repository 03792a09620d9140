# Overview: Read side for committed transactions (history and detail pages).

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import joinedload

from ..errors import TransactionNotFound
from ..extensions import db
from ..models import Transaction, TransactionDetail
from pos_app.time_utils import day_window


def _with_children(query):
    return query.options(
        joinedload(Transaction.user),
        joinedload(Transaction.receipt),
        joinedload(Transaction.details).joinedload(TransactionDetail.product),
    )


def list_transactions(*, user_id: int | None = None, on_date: date | None = None) -> list[Transaction]:
    """
    Transactions newest first.

    user_id restricts to one cashier; on_date restricts to one UTC calendar day.
    """
    query = _with_children(db.session.query(Transaction))
    if user_id is not None:
        query = query.filter(Transaction.user_id == user_id)
    if on_date is not None:
        start_dt, end_dt = day_window(on_date, on_date)
        query = query.filter(
            Transaction.transaction_date >= start_dt,
            Transaction.transaction_date < end_dt,
        )
    return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()


def get_transaction(transaction_id: int, *, user_id: int | None = None) -> Transaction:
    """
    One transaction with details and receipt.

    When user_id is given, another user's transaction is reported as not found.
    """
    tx = _with_children(db.session.query(Transaction)).filter(Transaction.id == transaction_id).first()
    if not tx or (user_id is not None and tx.user_id != user_id):
        raise TransactionNotFound("Transaction not found", details={"transaction_id": transaction_id})
    return tx

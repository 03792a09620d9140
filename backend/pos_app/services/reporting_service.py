# Overview: Service-layer operations for sales reporting; aggregates committed transactions.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..errors import InvalidDateRange
from ..extensions import db
from ..models import Product, Transaction, TransactionDetail
from pos_app.time_utils import day_window, parse_calendar_date
"""
Sales Report Semantics (authoritative)

- The range is inclusive of both calendar dates (UTC). Internally it is the
  half-open window [start 00:00, end+1 00:00), so end runs through 23:59:59.
- Every figure is computed from Transaction / TransactionDetail rows only;
  subtotals are the snapshots written at checkout.
- Top products are ranked by revenue (summed subtotal), ties by product id.
- Days without transactions are not synthesized.
- A report is built completely or not at all.
"""


@dataclass
class SalesReport:
    start: date
    end: date
    total_sales_cents: int = 0
    total_transaction_count: int = 0
    top_products: list[dict] = field(default_factory=list)
    sales_by_payment_method: list[dict] = field(default_factory=list)
    daily_sales: list[dict] = field(default_factory=list)

    @property
    def average_transaction_value_cents(self) -> float:
        if not self.total_transaction_count:
            return 0
        return self.total_sales_cents / self.total_transaction_count

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "total_sales_cents": self.total_sales_cents,
            "total_transaction_count": self.total_transaction_count,
            "average_transaction_value_cents": self.average_transaction_value_cents,
            "top_products": list(self.top_products),
            "sales_by_payment_method": list(self.sales_by_payment_method),
            "daily_sales": list(self.daily_sales),
        }


def resolve_range(start: str | date | None, end: str | date | None) -> tuple[date, date]:
    """Parse and order-check a report range; raises InvalidDateRange."""
    if start is None or end is None or start == "" or end == "":
        raise InvalidDateRange("Start and end dates are required")

    try:
        start_date = start if isinstance(start, date) else parse_calendar_date(start)
        end_date = end if isinstance(end, date) else parse_calendar_date(end)
    except ValueError:
        raise InvalidDateRange("Invalid date format", details={"start": str(start), "end": str(end)})

    if start_date is None or end_date is None:
        raise InvalidDateRange("Start and end dates are required")
    if start_date > end_date:
        raise InvalidDateRange(
            "Start date must be before or equal to end date",
            details={"start": start_date.isoformat(), "end": end_date.isoformat()},
        )
    if end_date == date.max:
        raise InvalidDateRange("End date is out of range", details={"end": end_date.isoformat()})
    return start_date, end_date


def _in_window(query, window):
    start_dt, end_dt = window
    return query.filter(
        Transaction.transaction_date >= start_dt,
        Transaction.transaction_date < end_dt,
    )


def _totals(window) -> tuple[int, int]:
    query = db.session.query(
        func.coalesce(func.sum(Transaction.total_price_cents), 0),
        func.count(Transaction.id),
    )
    total, count = _in_window(query, window).one()
    return int(total or 0), int(count or 0)


def _top_products(window, limit: int) -> list[dict]:
    revenue = func.sum(TransactionDetail.subtotal_cents)
    query = db.session.query(
        TransactionDetail.product_id.label("product_id"),
        Product.name.label("name"),
        func.coalesce(func.sum(TransactionDetail.quantity), 0).label("quantity"),
        func.coalesce(revenue, 0).label("revenue_cents"),
    ).join(
        Transaction, TransactionDetail.transaction_id == Transaction.id
    ).join(
        Product, TransactionDetail.product_id == Product.id
    )

    rows = (
        _in_window(query, window)
        .group_by(TransactionDetail.product_id, Product.name)
        .order_by(revenue.desc(), TransactionDetail.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "quantity": int(row.quantity or 0),
            "revenue_cents": int(row.revenue_cents or 0),
        }
        for row in rows
    ]


def _by_payment_method(window) -> list[dict]:
    query = db.session.query(
        Transaction.payment_method.label("method"),
        func.count(Transaction.id).label("count"),
        func.coalesce(func.sum(Transaction.total_price_cents), 0).label("total_cents"),
    )
    rows = (
        _in_window(query, window)
        .group_by(Transaction.payment_method)
        .order_by(Transaction.payment_method.asc())
        .all()
    )
    return [
        {
            "method": row.method,
            "count": int(row.count or 0),
            "total_cents": int(row.total_cents or 0),
        }
        for row in rows
    ]


def _daily(window) -> list[dict]:
    day = func.date(Transaction.transaction_date)
    query = db.session.query(
        day.label("day"),
        func.count(Transaction.id).label("transactions"),
        func.coalesce(func.sum(Transaction.total_price_cents), 0).label("revenue_cents"),
    )
    rows = _in_window(query, window).group_by(day).order_by(day.asc()).all()
    return [
        {
            # SQLite returns 'YYYY-MM-DD' text, other dialects a date
            "date": str(row.day)[:10],
            "transactions": int(row.transactions or 0),
            "revenue_cents": int(row.revenue_cents or 0),
        }
        for row in rows
    ]


def generate_report(start, end, *, top_limit: int | None = None) -> SalesReport:
    """
    Aggregate sales over an inclusive calendar-date range.

    Raises InvalidDateRange for missing, unparseable or out-of-order dates.
    """
    start_date, end_date = resolve_range(start, end)
    window = day_window(start_date, end_date)
    if top_limit is None:
        top_limit = current_app.config.get("REPORT_TOP_PRODUCTS_LIMIT", 10)

    total_sales, count = _totals(window)
    return SalesReport(
        start=start_date,
        end=end_date,
        total_sales_cents=total_sales,
        total_transaction_count=count,
        top_products=_top_products(window, top_limit),
        sales_by_payment_method=_by_payment_method(window),
        daily_sales=_daily(window),
    )


def detailed_transactions(start_date: date, end_date: date) -> list[Transaction]:
    """Transactions in range with cashier, details and receipt loaded, newest first."""
    query = db.session.query(Transaction).options(
        joinedload(Transaction.user),
        joinedload(Transaction.details).joinedload(TransactionDetail.product),
    )
    return (
        _in_window(query, day_window(start_date, end_date))
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .all()
    )

# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

# backend/pos_app/services/inventory_service.py

from __future__ import annotations

from sqlalchemy import func, update

from ..errors import InsufficientStockError, ProductNotFound, ValidationError
from ..extensions import db
from ..models import InventoryEntry, Product, LEDGER_REASONS
from .concurrency import begin_write, lock_for_update, run_with_retry
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- Product.stock_quantity is the live counter read by checkout and the UI.
- Every change to that counter appends exactly one InventoryEntry in the
  same DB transaction; entries are append-only.
- Replaying a product's entries in id order from a zero baseline reproduces
  stock_quantity. Product creation writes an 'initial' entry so the
  baseline is always zero.

Business invariants:
- stock_quantity may never go negative. Decrements are guarded updates
  (WHERE stock_quantity + delta >= 0) so they never act on a stale read.

Lifecycle:
- record() never commits; the caller's unit of work owns the commit.
- adjust_stock() is its own unit of work for restocks and corrections.
"""


def _require_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return product


def record(
    product_id: int,
    delta: int,
    reason: str,
    transaction_id: int | None = None,
    *,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryEntry:
    """
    Append a ledger entry inside the current unit of work.

    Does not touch Product.stock_quantity; callers move the counter and the
    ledger together.
    """
    if reason not in LEDGER_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(LEDGER_REASONS)}")
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationError("delta must be a non-zero integer")

    entry = InventoryEntry(
        product_id=product_id,
        quantity_changed=delta,
        reason=reason,
        transaction_id=transaction_id,
        note=note,
        created_by_user_id=user_id,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def apply_delta(product_id: int, delta: int) -> bool:
    """
    Guarded counter update: stock_quantity += delta unless it would go negative.

    Returns False when the guard rejected the update. The arithmetic happens
    in the database against the row's current value, never a value read
    earlier in Python.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity + delta >= 0)
        .values(stock_quantity=Product.stock_quantity + delta)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1


def current_stock(product_id: int) -> int:
    """Live stock counter for a product."""
    stock = db.session.query(Product.stock_quantity).filter_by(id=product_id).scalar()
    if stock is None:
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return int(stock)


def adjust_stock(
    *,
    product_id: int,
    delta: int,
    reason: str = "adjustment",
    user_id: int | None = None,
    note: str | None = None,
) -> InventoryEntry:
    """
    Restock or correct a product's stock as a standalone unit of work.

    'initial' and 'sale' are reserved for product creation and checkout.
    """
    if reason not in ("restock", "adjustment"):
        raise ValidationError("reason must be restock or adjustment")
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationError("delta must be a non-zero integer")
    if reason == "restock" and delta < 0:
        raise ValidationError("restock delta must be positive")

    def _op():
        try:
            begin_write()
            product = _require_product(product_id, lock=True)
            if product.deleted_at is not None:
                raise ProductNotFound("Product not found", details={"product_id": product_id})

            if not apply_delta(product_id, delta):
                available = current_stock(product_id)
                raise InsufficientStockError(product_id, product.name, -delta, available)

            entry = record(product_id, delta, reason, note=note, user_id=user_id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return entry

    return run_with_retry(_op)


def ledger_for_product(product_id: int) -> list[InventoryEntry]:
    """All ledger entries for a product in chronological order."""
    _require_product(product_id)
    return (
        db.session.query(InventoryEntry)
        .filter(InventoryEntry.product_id == product_id)
        .order_by(InventoryEntry.id.asc())
        .all()
    )


def replay_stock(product_id: int, baseline: int = 0) -> int:
    """
    Replay a product's ledger from a baseline.

    Raises ValueError if the running total dips below zero at any point,
    which would mean an entry was written without the stock guard.
    """
    running = baseline
    for entry in ledger_for_product(product_id):
        running += entry.quantity_changed
        if running < 0:
            raise ValueError(
                f"ledger for product {product_id} goes negative at entry {entry.id}"
            )
    return running


def reconcile(product_id: int | None = None) -> list[dict]:
    """
    Compare each product's counter against its ledger total.

    Soft-deleted products are included: their ledger must still balance.
    """
    totals = (
        db.session.query(
            InventoryEntry.product_id.label("product_id"),
            func.coalesce(func.sum(InventoryEntry.quantity_changed), 0).label("ledger_total"),
        )
        .group_by(InventoryEntry.product_id)
    )
    ledger_map = {row.product_id: int(row.ledger_total or 0) for row in totals}

    query = db.session.query(Product).order_by(Product.id.asc())
    if product_id is not None:
        query = query.filter(Product.id == product_id)

    rows = []
    for product in query.all():
        ledger_total = ledger_map.get(product.id, 0)
        rows.append(
            {
                "product_id": product.id,
                "name": product.name,
                "stock_quantity": product.stock_quantity,
                "ledger_total": ledger_total,
                "in_sync": ledger_total == product.stock_quantity,
            }
        )
    return rows

# Overview: Checkout engine; turns a cart into a committed sale in one unit of work.

"""
Checkout Service

A sale is committed as a single DB transaction that creates:
- the Transaction row (actor, payment method, server-computed total, server time)
- one TransactionDetail per cart line (subtotal snapshot)
- a stock decrement plus a 'sale' ledger entry per cart line
- exactly one Receipt

Either all of it commits or none of it does. Validation failures raise
before anything is written; failures after the first write roll back the
whole unit.

CONCURRENCY: stock is re-read inside the unit of work under a write lock
(BEGIN IMMEDIATE on SQLite, SELECT ... FOR UPDATE elsewhere) and every
decrement is a guarded UPDATE, so two checkouts racing for the last unit
cannot both commit.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    InsufficientStockError,
    InvalidPaymentMethod,
    PersistenceError,
    ProductNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import Product, Transaction, TransactionDetail, PAYMENT_METHODS
from ..money import MAX_PRICE_CENTS, to_cents
from pos_app.time_utils import utcnow, to_utc_z
from . import inventory_service, receipt_service
from .concurrency import begin_write, lock_for_update, run_with_retry


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    # None means "use the catalog price"
    unit_price_cents: int | None = None


@dataclass
class CheckoutResult:
    transaction_id: int
    receipt_number: str
    payment_method: str
    transaction_date: object
    total_cents: int
    line_items: list[dict] = field(default_factory=list)
    client_total_cents: int | None = None

    @property
    def total_mismatch(self) -> bool:
        return self.client_total_cents is not None and self.client_total_cents != self.total_cents

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "receipt_number": self.receipt_number,
            "payment_method": self.payment_method,
            "transaction_date": to_utc_z(self.transaction_date),
            "total_cents": self.total_cents,
            "client_total_cents": self.client_total_cents,
            "total_mismatch": self.total_mismatch,
            "line_items": list(self.line_items),
        }


def _positive_int(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer")
    return value


def build_cart(items) -> list[CartLine]:
    """
    Parse the wire cart: [{id|product_id, quantity, price?|price_cents?}, ...].

    price is a decimal amount in major units; price_cents wins when both are sent.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Cart must contain at least one item")

    cart = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")

        raw_id = item.get("product_id", item.get("id"))
        product_id = _positive_int(raw_id, f"items[{index}].id")
        quantity = _positive_int(item.get("quantity"), f"items[{index}].quantity")

        unit_price_cents = None
        if item.get("price_cents") is not None:
            unit_price_cents = item["price_cents"]
            if isinstance(unit_price_cents, bool) or not isinstance(unit_price_cents, int) or unit_price_cents < 0:
                raise ValidationError(f"items[{index}].price_cents must be a non-negative integer")
            if unit_price_cents > MAX_PRICE_CENTS:
                raise ValidationError(f"items[{index}].price_cents cannot exceed {MAX_PRICE_CENTS}")
        elif item.get("price") is not None:
            unit_price_cents = to_cents(item["price"], f"items[{index}].price")

        cart.append(CartLine(product_id=product_id, quantity=quantity, unit_price_cents=unit_price_cents))
    return cart


def _validate(cart: list[CartLine], payment_method: str) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise InvalidPaymentMethod(
            "Invalid payment method",
            details={"payment_method": payment_method, "allowed": list(PAYMENT_METHODS)},
        )
    if not cart:
        raise ValidationError("Cart must contain at least one item")
    for line in cart:
        _positive_int(line.quantity, "quantity")
        if line.unit_price_cents is not None and line.unit_price_cents < 0:
            raise ValidationError("unit price must be >= 0")


def _requested_quantities(cart: list[CartLine]) -> "OrderedDict[int, int]":
    requested: OrderedDict[int, int] = OrderedDict()
    for line in cart:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    return requested


def _load_locked_products(product_ids: list[int]) -> dict[int, Product]:
    query = (
        db.session.query(Product)
        .filter(Product.id.in_(product_ids))
        .order_by(Product.id.asc())
        .populate_existing()
    )
    products = {p.id: p for p in lock_for_update(query).all()}
    for product_id in product_ids:
        product = products.get(product_id)
        if product is None or not product.is_sellable:
            raise ProductNotFound("Product not found", details={"product_id": product_id})
    return products


def checkout(
    cart: list[CartLine],
    payment_method: str,
    actor_user_id: int,
    *,
    client_total_cents: int | None = None,
) -> CheckoutResult:
    """
    Commit a cart as a sale.

    Raises:
        InvalidPaymentMethod / ValidationError: bad input, nothing written
        ProductNotFound: unknown or soft-deleted product
        InsufficientStockError: stock re-read under lock is short
        ConcurrencyConflictError: lost the lock race on every retry
        PersistenceError: any other store failure (fully rolled back)
    """
    _validate(cart, payment_method)
    if not actor_user_id:
        raise ValidationError("actor is required")

    requested = _requested_quantities(cart)
    logger = current_app.logger

    def _op() -> CheckoutResult:
        try:
            begin_write()
            products = _load_locked_products(sorted(requested))

            for product_id, quantity in requested.items():
                product = products[product_id]
                if product.stock_quantity < quantity:
                    raise InsufficientStockError(product_id, product.name, quantity, product.stock_quantity)

            priced = []
            for line in cart:
                product = products[line.product_id]
                unit_price = line.unit_price_cents
                if unit_price is None:
                    unit_price = product.price_cents
                elif unit_price != product.price_cents:
                    logger.warning(
                        "Checkout unit price differs from catalog: product=%s cart=%s catalog=%s",
                        product.id, unit_price, product.price_cents,
                    )
                priced.append((line, product, unit_price, line.quantity * unit_price))

            total_cents = sum(subtotal for _, _, _, subtotal in priced)
            now = utcnow()

            tx = Transaction(
                user_id=actor_user_id,
                total_price_cents=total_cents,
                payment_method=payment_method,
                transaction_date=now,
            )
            db.session.add(tx)
            db.session.flush()

            line_items = []
            for line, product, unit_price, subtotal in priced:
                detail = TransactionDetail(
                    transaction_id=tx.id,
                    product_id=product.id,
                    quantity=line.quantity,
                    unit_price_cents=unit_price,
                    subtotal_cents=subtotal,
                )
                db.session.add(detail)

                if not inventory_service.apply_delta(product.id, -line.quantity):
                    raise InsufficientStockError(
                        product.id,
                        product.name,
                        requested[product.id],
                        inventory_service.current_stock(product.id),
                    )
                inventory_service.record(
                    product.id,
                    -line.quantity,
                    "sale",
                    tx.id,
                    user_id=actor_user_id,
                )

                line_items.append(
                    {
                        "product_id": product.id,
                        "product_name": product.name,
                        "quantity": line.quantity,
                        "unit_price_cents": unit_price,
                        "subtotal_cents": subtotal,
                    }
                )

            receipt = receipt_service.mint_receipt(tx)

            result = CheckoutResult(
                transaction_id=tx.id,
                receipt_number=receipt.receipt_number,
                payment_method=payment_method,
                transaction_date=now,
                total_cents=total_cents,
                line_items=line_items,
                client_total_cents=client_total_cents,
            )
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    attempts = current_app.config.get("CHECKOUT_RETRY_ATTEMPTS", 3)
    try:
        result = run_with_retry(_op, attempts=attempts)
    except SQLAlchemyError as exc:
        logger.exception("Checkout failed in the persistence layer")
        raise PersistenceError("Failed to process transaction") from exc

    if result.total_mismatch:
        logger.warning(
            "Client total %s differs from server total %s for transaction %s",
            client_total_cents, result.total_cents, result.transaction_id,
        )
    logger.info(
        "Checkout committed transaction=%s receipt=%s total_cents=%s lines=%s",
        result.transaction_id, result.receipt_number, result.total_cents, len(result.line_items),
    )
    return result

"""
Checkout engine tests.

Verifies:
- A committed sale writes transaction, details, ledger entries and receipt together
- Validation failures abort before any write
- A failure inside the unit of work rolls everything back
- Lock errors are retried, then surface as ConcurrencyConflictError
- Subtotals are snapshots that survive later price changes
"""

import pytest

from sqlalchemy.exc import OperationalError

from pos_app.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidPaymentMethod,
    PersistenceError,
    ProductNotFound,
    ValidationError,
)
from pos_app.extensions import db
from pos_app.models import InventoryEntry, Receipt, Transaction, TransactionDetail
from pos_app.services import catalog_service, checkout_service, concurrency, inventory_service, receipt_service
from pos_app.services.checkout_service import CartLine


def _counts():
    return {
        "transactions": db.session.query(Transaction).count(),
        "details": db.session.query(TransactionDetail).count(),
        "receipts": db.session.query(Receipt).count(),
        "sale_entries": db.session.query(InventoryEntry).filter_by(reason="sale").count(),
    }


class TestCheckoutScenario:

    def test_two_line_cash_sale(self, cashier_user, make_product):
        first = make_product("Coffee", price_cents=1_000_000, stock=10)
        second = make_product("Tea", price_cents=500_000, stock=5)

        cart = checkout_service.build_cart([
            {"id": first.id, "quantity": 2, "price": 10000},
            {"id": second.id, "quantity": 1, "price": 5000},
        ])
        result = checkout_service.checkout(cart, "cash", cashier_user.id)

        assert result.total_cents == 2_500_000

        tx = db.session.get(Transaction, result.transaction_id)
        assert tx.total_price_cents == 2_500_000
        assert tx.payment_method == "cash"
        assert tx.user_id == cashier_user.id
        assert sorted(d.subtotal_cents for d in tx.details) == [500_000, 2_000_000]

        assert inventory_service.current_stock(first.id) == 8
        assert inventory_service.current_stock(second.id) == 4

        receipts = db.session.query(Receipt).filter_by(transaction_id=tx.id).all()
        assert len(receipts) == 1
        assert receipts[0].receipt_number == result.receipt_number
        assert result.receipt_number.startswith(f"INV-{tx.id}-")

        sale_entries = db.session.query(InventoryEntry).filter_by(transaction_id=tx.id).all()
        assert sorted((e.product_id, e.quantity_changed) for e in sale_entries) == sorted(
            [(first.id, -2), (second.id, -1)]
        )
        assert all(e.reason == "sale" for e in sale_entries)

    def test_catalog_price_used_when_cart_has_no_price(self, cashier_user, make_product):
        product = make_product(price_cents=1_250, stock=3)
        result = checkout_service.checkout([CartLine(product.id, 2)], "card", cashier_user.id)
        assert result.total_cents == 2_500
        assert result.line_items[0]["unit_price_cents"] == 1_250

    def test_client_total_is_advisory(self, cashier_user, make_product):
        product = make_product(price_cents=1_000, stock=3)
        result = checkout_service.checkout(
            [CartLine(product.id, 1)], "e_wallet", cashier_user.id, client_total_cents=999,
        )
        assert result.total_cents == 1_000
        assert result.total_mismatch is True
        assert db.session.get(Transaction, result.transaction_id).total_price_cents == 1_000

    def test_duplicate_lines_checked_against_combined_quantity(self, cashier_user, make_product):
        product = make_product(stock=3)
        cart = [CartLine(product.id, 2), CartLine(product.id, 2)]

        with pytest.raises(InsufficientStockError) as exc_info:
            checkout_service.checkout(cart, "cash", cashier_user.id)

        assert exc_info.value.details["requested"] == 4
        assert exc_info.value.details["available"] == 3
        assert inventory_service.current_stock(product.id) == 3


class TestCheckoutValidation:

    @pytest.mark.parametrize("method", ["bitcoin", "", None, "CASH"])
    def test_invalid_payment_method(self, cashier_user, make_product, method):
        product = make_product(stock=5)
        with pytest.raises(InvalidPaymentMethod):
            checkout_service.checkout([CartLine(product.id, 1)], method, cashier_user.id)
        assert _counts()["transactions"] == 0

    def test_empty_cart(self, cashier_user):
        with pytest.raises(ValidationError):
            checkout_service.checkout([], "cash", cashier_user.id)

    @pytest.mark.parametrize("items", [
        None,
        [],
        [{"id": 1, "quantity": 0}],
        [{"id": 1, "quantity": -2}],
        [{"id": 1, "quantity": 1.5}],
        [{"quantity": 1}],
        [{"id": 1, "quantity": 1, "price": -1}],
        [{"id": 1, "quantity": 1, "price": "abc"}],
        [{"id": 1, "quantity": 1, "price": "1e999999999"}],
        [{"id": 1, "quantity": 1, "price": "10000000"}],
        [{"id": 1, "quantity": 1, "price_cents": 10**12}],
        ["not-an-object"],
    ])
    def test_build_cart_rejects_malformed_items(self, items):
        with pytest.raises(ValidationError):
            checkout_service.build_cart(items)

    def test_unknown_product(self, cashier_user, db_session):
        with pytest.raises(ProductNotFound):
            checkout_service.checkout([CartLine(987654, 1)], "cash", cashier_user.id)
        assert _counts()["transactions"] == 0

    def test_soft_deleted_product_is_not_sellable(self, cashier_user, make_product):
        product = make_product(stock=5)
        catalog_service.delete_product(product_id=product.id)

        with pytest.raises(ProductNotFound):
            checkout_service.checkout([CartLine(product.id, 1)], "cash", cashier_user.id)
        assert inventory_service.current_stock(product.id) == 5

    def test_insufficient_stock_names_product(self, cashier_user, make_product):
        product = make_product("Espresso Beans", stock=1)

        with pytest.raises(InsufficientStockError) as exc_info:
            checkout_service.checkout([CartLine(product.id, 2)], "cash", cashier_user.id)

        err = exc_info.value
        assert "Espresso Beans" in err.message
        assert err.details["product_id"] == product.id
        assert _counts() == {"transactions": 0, "details": 0, "receipts": 0, "sale_entries": 0}


class TestCheckoutAtomicity:

    def test_failure_while_minting_receipt_rolls_back_everything(self, cashier_user, make_product, monkeypatch):
        first = make_product(stock=10)
        second = make_product(stock=5)

        def boom(transaction):
            raise RuntimeError("receipt printer on fire")

        monkeypatch.setattr(receipt_service, "mint_receipt", boom)

        with pytest.raises(RuntimeError):
            checkout_service.checkout(
                [CartLine(first.id, 2), CartLine(second.id, 1)], "cash", cashier_user.id,
            )

        assert _counts() == {"transactions": 0, "details": 0, "receipts": 0, "sale_entries": 0}
        assert inventory_service.current_stock(first.id) == 10
        assert inventory_service.current_stock(second.id) == 5

    def test_store_failure_surfaces_as_persistence_error(self, cashier_user, make_product, monkeypatch):
        from sqlalchemy.exc import IntegrityError

        product = make_product(stock=4)

        def broken_record(*args, **kwargs):
            raise IntegrityError("INSERT INTO inventory", {}, Exception("constraint failed"))

        monkeypatch.setattr(inventory_service, "record", broken_record)

        with pytest.raises(PersistenceError):
            checkout_service.checkout([CartLine(product.id, 1)], "cash", cashier_user.id)

        assert _counts()["transactions"] == 0
        assert inventory_service.current_stock(product.id) == 4

    def test_ledger_still_reconciles_after_failed_checkout(self, cashier_user, make_product):
        product = make_product(stock=2)
        checkout_service.checkout([CartLine(product.id, 1)], "cash", cashier_user.id)
        with pytest.raises(InsufficientStockError):
            checkout_service.checkout([CartLine(product.id, 5)], "cash", cashier_user.id)

        assert inventory_service.replay_stock(product.id) == inventory_service.current_stock(product.id) == 1


class TestCheckoutRetry:

    @pytest.fixture(autouse=True)
    def _no_backoff(self, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

    def test_transient_lock_error_is_retried_and_commits_once(self, cashier_user, make_product, monkeypatch):
        product = make_product(stock=5)
        real_mint = receipt_service.mint_receipt
        calls = {"n": 0}

        def locked_once(transaction):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("INSERT INTO receipts", {}, Exception("database is locked"))
            return real_mint(transaction)

        monkeypatch.setattr(receipt_service, "mint_receipt", locked_once)

        result = checkout_service.checkout([CartLine(product.id, 2)], "cash", cashier_user.id)

        assert calls["n"] == 2
        assert _counts() == {"transactions": 1, "details": 1, "receipts": 1, "sale_entries": 1}
        assert inventory_service.current_stock(product.id) == 3
        assert db.session.query(Receipt).one().receipt_number == result.receipt_number
        assert inventory_service.replay_stock(product.id) == 3

    def test_exhausted_retries_raise_conflict_and_write_nothing(self, app, cashier_user, make_product, monkeypatch):
        monkeypatch.setitem(app.config, "CHECKOUT_RETRY_ATTEMPTS", 3)
        product = make_product(stock=5)
        calls = {"n": 0}

        def always_locked(transaction):
            calls["n"] += 1
            raise OperationalError("INSERT INTO receipts", {}, Exception("database is locked"))

        monkeypatch.setattr(receipt_service, "mint_receipt", always_locked)

        with pytest.raises(ConcurrencyConflictError) as excinfo:
            checkout_service.checkout([CartLine(product.id, 2)], "cash", cashier_user.id)

        assert calls["n"] == 3
        assert excinfo.value.details == {"attempts": 3}
        assert _counts() == {"transactions": 0, "details": 0, "receipts": 0, "sale_entries": 0}
        assert inventory_service.current_stock(product.id) == 5


class TestSubtotalImmutability:

    def test_price_change_does_not_touch_past_sales(self, cashier_user, make_product):
        product = make_product(price_cents=1_000, stock=10)
        result = checkout_service.checkout([CartLine(product.id, 3)], "cash", cashier_user.id)

        catalog_service.update_product(product_id=product.id, patch={"price_cents": 9_999})

        detail = db.session.query(TransactionDetail).filter_by(transaction_id=result.transaction_id).one()
        assert detail.unit_price_cents == 1_000
        assert detail.subtotal_cents == 3_000
        assert db.session.get(Transaction, result.transaction_id).total_price_cents == 3_000


class TestReceiptNumbers:

    def test_receipt_numbers_are_unique(self, cashier_user, make_product):
        product = make_product(stock=10)
        numbers = {
            checkout_service.checkout([CartLine(product.id, 1)], "cash", cashier_user.id).receipt_number
            for _ in range(5)
        }
        assert len(numbers) == 5

    def test_format_uses_configured_prefix(self, app):
        from datetime import datetime

        number = receipt_service.format_receipt_number(42, datetime(2024, 1, 1), prefix="POS")
        assert number == "POS-42-1704067200000"

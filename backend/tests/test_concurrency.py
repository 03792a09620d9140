"""
Concurrent checkout tests.

Runs on a temp-file SQLite database so each thread gets its own connection
and the BEGIN IMMEDIATE write lock is exercised for real.
"""

import threading

import pytest

from pos_app import create_app
from pos_app.errors import ConcurrencyConflictError, InsufficientStockError
from pos_app.extensions import db
from pos_app.services import catalog_service, checkout_service, inventory_service
from pos_app.services.auth_service import create_user
from pos_app.services.checkout_service import CartLine

from conftest import PASSWORD, TEST_CONFIG


@pytest.fixture
def race_app(tmp_path):
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'CHECKOUT_RETRY_ATTEMPTS': 5,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed(app, stock: int):
    with app.app_context():
        user = create_user("racer", PASSWORD, "cashier")
        category = catalog_service.create_category("Limited")
        product = catalog_service.create_product(
            patch={"name": "Last One", "category_id": category.id, "price_cents": 500},
            stock_quantity=stock,
        )
        return user.id, product.id


def _race(app, user_id: int, product_id: int, buyers: int) -> list:
    barrier = threading.Barrier(buyers)
    outcomes = []
    lock = threading.Lock()

    def buy():
        with app.app_context():
            barrier.wait()
            try:
                checkout_service.checkout([CartLine(product_id, 1)], "cash", user_id)
                outcome = "ok"
            except (InsufficientStockError, ConcurrencyConflictError) as exc:
                outcome = type(exc).__name__
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=buy) for _ in range(buyers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def test_two_buyers_one_unit(race_app):
    user_id, product_id = _seed(race_app, stock=1)

    outcomes = _race(race_app, user_id, product_id, buyers=2)

    assert sorted(outcomes) == ["InsufficientStockError", "ok"]
    with race_app.app_context():
        assert inventory_service.current_stock(product_id) == 0
        assert inventory_service.replay_stock(product_id) == 0


def test_many_buyers_never_oversell(race_app):
    user_id, product_id = _seed(race_app, stock=3)

    outcomes = _race(race_app, user_id, product_id, buyers=6)

    assert len(outcomes) == 6
    assert outcomes.count("ok") <= 3
    with race_app.app_context():
        stock = inventory_service.current_stock(product_id)
        assert stock == 3 - outcomes.count("ok")
        assert stock >= 0
        [row] = inventory_service.reconcile(product_id)
        assert row["in_sync"] is True

"""Flask CLI command groups."""

from pos_app.extensions import db
from pos_app.models import Product, User

from conftest import PASSWORD


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--username", "night", "--password", PASSWORD, "--role", "cashier"])
    assert result.exit_code == 0, result.output
    assert db.session.query(User).filter_by(username="night").one().role == "cashier"

    result = runner.invoke(args=["users", "list"])
    assert "night" in result.output


def test_users_create_rejects_weak_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["users", "create", "--username", "weak", "--password", "short", "--role", "admin"])
    assert result.exit_code != 0
    assert db.session.query(User).filter_by(username="weak").count() == 0


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()
    assert runner.invoke(args=["system", "init"]).exit_code == 0
    assert runner.invoke(args=["system", "init"]).exit_code == 0
    assert sorted(u.username for u in db.session.query(User).all()) == ["admin", "cashier"]


def test_inventory_reconcile_exit_codes(app, make_product):
    runner = app.test_cli_runner()
    product = make_product(stock=5)

    result = runner.invoke(args=["inventory", "reconcile"])
    assert result.exit_code == 0
    assert "in sync" in result.output

    db.session.query(Product).filter_by(id=product.id).update({"stock_quantity": 6})
    db.session.commit()

    result = runner.invoke(args=["inventory", "reconcile"])
    assert result.exit_code == 1
    assert "MISMATCH" in result.output

# backend/pos_app/services/catalog_service.py
"""
Catalog Service

Thin CRUD over categories and products. Stock is not editable here: a new
product's opening stock is booked as an 'initial' ledger entry, and every
later change goes through inventory_service or checkout_service.
"""
from __future__ import annotations

from sqlalchemy import func

from ..errors import CategoryNotFound, ConflictError, ProductNotFound, ValidationError
from ..extensions import db
from ..models import Category, Product
from pos_app.time_utils import utcnow
from . import inventory_service

PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "price_cents", "photo_url"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise CategoryNotFound("Category not found", details={"category_id": category_id})
    return category


def list_categories() -> list[dict]:
    """Categories with the number of products referencing them."""
    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.deleted_at.is_(None))
        .group_by(Product.category_id)
        .all()
    )
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [
        {**c.to_dict(), "product_count": int(counts.get(c.id, 0))}
        for c in categories
    ]


def _clean_category_name(name) -> str:
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("name is required")
    if len(name) > 120:
        raise ValidationError("name exceeds max length 120")
    return name


def create_category(name: str) -> Category:
    name = _clean_category_name(name)
    if db.session.query(Category).filter_by(name=name).first():
        raise ConflictError("Category already exists")

    category = Category(name=name)
    db.session.add(category)
    db.session.commit()
    return category


def rename_category(category_id: int, name: str) -> Category:
    """Rename a category; names stay unique."""
    category = _require_category(category_id)
    name = _clean_category_name(name)

    clash = (
        db.session.query(Category.id)
        .filter(Category.name == name, Category.id != category.id)
        .first()
    )
    if clash:
        raise ConflictError("Category already exists", details={"name": name})

    category.name = name
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    """
    Delete a category.

    Fails while any product (soft-deleted included) still references it,
    since historic sales keep pointing at those products.
    """
    category = _require_category(category_id)
    in_use = db.session.query(Product.id).filter_by(category_id=category.id).first()
    if in_use:
        raise ConflictError("Category still has products", details={"category_id": category_id})
    db.session.delete(category)
    db.session.commit()


def list_products(*, category_id: int | None = None, include_deleted: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_deleted:
        query = query.filter(Product.deleted_at.is_(None))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if not product or (product.deleted_at is not None and not include_deleted):
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return product


def create_product(*, patch: dict, stock_quantity: int = 0, user_id: int | None = None) -> Product:
    """
    Create a product and book its opening stock.

    The 'initial' ledger entry and the product row commit together so the
    ledger always replays from a zero baseline.
    """
    if isinstance(stock_quantity, bool) or not isinstance(stock_quantity, int) or stock_quantity < 0:
        raise ValidationError("stock_quantity must be a non-negative integer")

    if "category_id" not in patch or patch["category_id"] is None:
        raise ValidationError("category_id is required")
    _require_category(patch["category_id"])

    p = Product(stock_quantity=stock_quantity)
    apply_product_patch(p, patch)

    try:
        db.session.add(p)
        db.session.flush()  # ensure p.id exists before ledger append
        if stock_quantity:
            inventory_service.record(p.id, stock_quantity, "initial", user_id=user_id, note="Opening stock")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    p = get_product(product_id)
    if patch.get("category_id") is not None:
        _require_category(patch["category_id"])
    apply_product_patch(p, patch)
    db.session.commit()
    return p


def delete_product(*, product_id: int) -> Product:
    """Soft-delete: the product stops being sellable, history is kept."""
    p = get_product(product_id)
    p.deleted_at = utcnow()
    db.session.commit()
    return p

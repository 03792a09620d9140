# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/pos_app/routes/products.py
"""
Product catalog routes.

- Read operations require VIEW_CATALOG
- Write operations require MANAGE_CATALOG

Prices arrive either as price_cents or as a decimal "price" in major units.
stock_quantity is accepted on create only; afterwards stock moves through
/api/inventory and checkout.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import POSError, ValidationError
from ..models import Product
from ..money import to_cents
from ..permissions import Capability
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "price_cents", "photo_url"},
    required_on_create={"name", "category_id", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _normalize_price(payload: dict) -> dict:
    payload = dict(payload)
    if "price" in payload:
        price = payload.pop("price")
        if "price_cents" not in payload:
            payload["price_cents"] = to_cents(price, "price")
    return payload


@products_bp.get("")
@require_auth
@require_capability(Capability.VIEW_CATALOG)
def list_products():
    """
    Query params:
    - category_id: int (optional)
    """
    category_id = request.args.get("category_id", type=int)
    products = catalog_service.list_products(category_id=category_id)
    return {"items": [p.to_dict() for p in products], "count": len(products)}, 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability(Capability.VIEW_CATALOG)
def get_product_route(product_id: int):
    try:
        return catalog_service.get_product(product_id).to_dict(), 200
    except POSError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        payload = _normalize_price(payload)
        stock_quantity = payload.pop("stock_quantity", 0)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = catalog_service.create_product(
            patch=patch,
            stock_quantity=stock_quantity,
            user_id=g.actor.user_id,
        )
    except POSError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        if "stock_quantity" in payload:
            raise ValidationError("stock_quantity cannot be edited; use /api/inventory/<id>/adjust")
        payload = _normalize_price(payload)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = catalog_service.update_product(product_id=product_id, patch=patch)
    except POSError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def delete_product_route(product_id: int):
    """Soft-delete; historic sales keep referencing the product."""
    try:
        catalog_service.delete_product(product_id=product_id)
    except POSError as e:
        return e.to_dict(), e.status_code

    return {"ok": True}, 200

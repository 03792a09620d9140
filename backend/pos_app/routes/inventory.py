# Overview: Flask API routes for the inventory ledger; parses input and returns JSON responses.

# backend/pos_app/routes/inventory.py
"""
Inventory ledger routes.

Stock never changes through product edits: restocks and corrections are
posted here as ledger entries, and checkout posts 'sale' entries.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import POSError
from ..permissions import Capability
from ..services import catalog_service, inventory_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:product_id>/ledger")
@require_auth
@require_capability(Capability.MANAGE_INVENTORY)
def ledger_route(product_id: int):
    """Chronological ledger entries plus the live counter for one product."""
    try:
        product = catalog_service.get_product(product_id, include_deleted=True)
        entries = inventory_service.ledger_for_product(product_id)
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "product_id": product.id,
        "stock_quantity": product.stock_quantity,
        "entries": [entry.to_dict() for entry in entries],
    }), 200


@inventory_bp.post("/<int:product_id>/adjust")
@require_auth
@require_capability(Capability.MANAGE_INVENTORY)
def adjust_route(product_id: int):
    """
    Body:
    - delta: non-zero int (positive adds stock)
    - reason: "restock" | "adjustment" (default "adjustment")
    - note: optional free text
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        entry = inventory_service.adjust_stock(
            product_id=product_id,
            delta=data.get("delta"),
            reason=data.get("reason") or "adjustment",
            user_id=g.actor.user_id,
            note=data.get("note"),
        )
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Stock adjustment failed for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "entry": entry.to_dict(),
        "stock_quantity": inventory_service.current_stock(product_id),
    }), 201


@inventory_bp.get("/reconcile")
@require_auth
@require_capability(Capability.MANAGE_INVENTORY)
def reconcile_route():
    """Compare every product's counter with its ledger replay."""
    rows = inventory_service.reconcile()
    return jsonify({
        "items": rows,
        "in_sync": all(row["in_sync"] for row in rows),
    }), 200

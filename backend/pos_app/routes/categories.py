# Overview: Flask API routes for product categories.

from flask import Blueprint, request, current_app

from ..decorators import require_auth, require_capability
from ..errors import POSError
from ..permissions import Capability
from ..services import catalog_service


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_capability(Capability.VIEW_CATALOG)
def list_categories():
    return {"items": catalog_service.list_categories()}, 200


@categories_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(data.get("name") if isinstance(data, dict) else None)
    except POSError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return {"error": "Internal server error"}, 500
    return category.to_dict(), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def rename_category_route(category_id: int):
    """Body: {"name": str}. 409 when another category already has the name."""
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.rename_category(
            category_id, data.get("name") if isinstance(data, dict) else None
        )
    except POSError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to rename category %s", category_id)
        return {"error": "Internal server error"}, 500
    return category.to_dict(), 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_capability(Capability.MANAGE_CATALOG)
def delete_category_route(category_id: int):
    """409 while any product still references the category."""
    try:
        catalog_service.delete_category(category_id)
    except POSError as e:
        return e.to_dict(), e.status_code
    return {"ok": True}, 200

# Overview: Flask API routes for checkout and transaction history; parses input and returns JSON responses.

# backend/pos_app/routes/transactions.py
"""
Checkout and transaction history routes.

SECURITY:
- POST requires CHECKOUT; the acting user always comes from the session,
  never from the payload.
- Cashiers (VIEW_OWN_TRANSACTIONS) only see their own transactions;
  VIEW_ALL_TRANSACTIONS lifts that restriction.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import POSError, ValidationError
from ..money import MAX_TOTAL_CENTS, to_cents
from ..permissions import Capability
from ..services import checkout_service, transaction_service
from pos_app.time_utils import parse_calendar_date

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _visible_user_id():
    """None means every user's transactions are visible."""
    if g.actor.can(Capability.VIEW_ALL_TRANSACTIONS):
        return None
    return g.actor.user_id


@transactions_bp.post("")
@require_auth
@require_capability(Capability.CHECKOUT)
def checkout_route():
    """
    Body:
    {
      "items": [{"id": 1, "quantity": 2, "price": 100.00}, ...],
      "payment_method": "cash" | "card" | "e_wallet",
      "total_price": 200.00        (optional, advisory)
    }

    Returns 201 with the committed transaction and its receipt number.
    """
    data = request.get_json(silent=True) or {}

    try:
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        cart = checkout_service.build_cart(data.get("items"))

        client_total_cents = None
        if data.get("total_price") is not None:
            client_total_cents = to_cents(data["total_price"], "total_price", limit=MAX_TOTAL_CENTS)

        result = checkout_service.checkout(
            cart,
            data.get("payment_method"),
            g.actor.user_id,
            client_total_cents=client_total_cents,
        )
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Failed to process transaction"}), 500

    return jsonify(result.to_dict()), 201


@transactions_bp.get("")
@require_auth
@require_capability(Capability.VIEW_OWN_TRANSACTIONS)
def list_transactions_route():
    """
    Query params:
    - date: YYYY-MM-DD (optional, UTC calendar day)
    - user_id: int (optional, only honoured with VIEW_ALL_TRANSACTIONS)
    """
    try:
        on_date = parse_calendar_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    user_id = _visible_user_id()
    if user_id is None:
        user_id = request.args.get("user_id", type=int)

    transactions = transaction_service.list_transactions(user_id=user_id, on_date=on_date)
    return jsonify({
        "items": [tx.to_dict(include_details=True) for tx in transactions],
        "count": len(transactions),
    }), 200


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_capability(Capability.VIEW_OWN_TRANSACTIONS)
def get_transaction_route(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(transaction_id, user_id=_visible_user_id())
    except POSError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(tx.to_dict(include_details=True)), 200

# Overview: Flask API route for the live cart summary; parses input and returns JSON responses.

# backend/laundry/routes/cart.py
"""
Cart Summary API

WHY: The checkout screen recomputes totals on every change. The server is
the single source of rounding rules so the UI and the ledger never disagree.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LaundryError, NotFoundError, error_response
from ..extensions import db
from ..models import Branch
from ..services import customer_service, pricing_service
from ..validation import parse_int
from ..decorators import require_operator


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.post("/summary")
@require_operator
def cart_summary_route():
    """
    Compute subtotal, tax and total with the operator's branch tax rate.

    Request body:
    {
        "items": [{"unit_price": "10.00", "quantity": 2}],
        "customer_id": 7,            (optional, caps redemption)
        "redeemed_points": 5         (optional)
    }

    Returns:
        200: {"summary": {...}}
        400: Invalid input
        404: Branch or customer not found
    """
    try:
        data = request.get_json(silent=True) or {}

        branch = db.session.get(Branch, g.branch_id)
        if not branch:
            raise NotFoundError(f"Branch {g.branch_id} not found")

        customer_points = 0
        if data.get("customer_id") is not None:
            customer = customer_service.get_customer(parse_int(data["customer_id"], "customer_id"))
            customer_points = customer.loyalty_points

        summary = pricing_service.compute_summary(
            pricing_service.parse_cart_lines(data.get("items") or []),
            pricing_service.tax_rate_for_branch(branch),
            redeemed_points=data.get("redeemed_points") or 0,
            customer_points=customer_points,
        )

        return jsonify({"summary": summary.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute cart summary")
        return jsonify({"error": "Internal server error"}), 500

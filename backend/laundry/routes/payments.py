# Overview: Flask API routes for payments; parses input and returns JSON responses.

# backend/laundry/routes/payments.py
"""
Payment API Routes

WHY: Pay-later customers settle their balance at the counter.

SECURITY:
- received_by is always the authenticated operator, never the request body
- order_id may only reference an order of the operator's branch
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LaundryError, error_response
from ..services import payment_service
from ..decorators import require_operator


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_operator
def record_payment_route():
    """
    Record a payment against a customer's balance.

    Request body:
    {
        "customer_id": 7,
        "amount": "10.00",
        "payment_method": "cash" | "card",
        "order_id": 12,          (optional)
        "notes": "..."           (optional)
    }

    Returns:
        201: {"payment": {...}, "balance_due": "15.00"}
        400: Invalid input
        404: Customer or order not found
    """
    try:
        data = request.get_json(silent=True) or {}

        payment = payment_service.record_payment(
            customer_id=data.get("customer_id"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            received_by=g.operator_name,
            branch_id=g.branch_id,
            order_id=data.get("order_id"),
            notes=data.get("notes"),
        )

        return jsonify({
            "payment": payment.to_dict(),
            "balance_due": payment.customer.to_dict()["balance_due"],
        }), 201

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500

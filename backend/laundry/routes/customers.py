# Overview: Flask API routes for customer accounts; parses input and returns JSON responses.

# backend/laundry/routes/customers.py
"""
Customer API Routes

Profile fields are editable here. balance_due, loyalty_points and
total_spent are read-only: they only move through orders and payments.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LaundryError, error_response
from ..services import customer_service, order_service, payment_service
from ..validation import parse_int
from ..decorators import require_operator


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _page_args() -> tuple[int, int]:
    page = parse_int(request.args.get("page", "1"), "page")
    page_size = parse_int(request.args.get("pageSize", "20"), "pageSize")
    return page, page_size


# =============================================================================
# PROFILE
# =============================================================================

@customers_bp.post("")
@require_operator
def create_customer_route():
    try:
        data = request.get_json(silent=True) or {}
        if isinstance(data, dict):
            data.setdefault("branch_id", g.branch_id)
        customer = customer_service.create_customer(data)
        return jsonify({"customer": customer.to_dict()}), 201

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_operator
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.patch("/<int:customer_id>")
@require_operator
def update_customer_route(customer_id: int):
    """
    Update profile fields (name, phone, email, address, nickname).

    Returns:
        200: Updated customer
        400: Financial field supplied or invalid value
        404: Customer not found
        409: Phone or nickname already taken
    """
    try:
        data = request.get_json(silent=True)
        customer = customer_service.update_customer_profile(customer_id, data)
        return jsonify({"customer": customer.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_operator
def deactivate_customer_route(customer_id: int):
    """Soft delete: the account is kept for its orders and payments."""
    try:
        customer = customer_service.deactivate_customer(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# HISTORY
# =============================================================================

@customers_bp.get("/<int:customer_id>/orders")
@require_operator
def customer_orders_route(customer_id: int):
    """Orders in the operator's branch with paid/remaining per order."""
    try:
        orders = order_service.list_customer_orders(customer_id, branch_id=g.branch_id)
        return jsonify({"orders": orders}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customer orders")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/payments")
@require_operator
def customer_payments_route(customer_id: int):
    """
    Query params:
    - page: 1-based page (default 1)
    - pageSize: 1..100 (default 20)
    """
    try:
        page, page_size = _page_args()
        result = payment_service.list_customer_payments(customer_id, page=page, page_size=page_size)
        return jsonify(result), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customer payments")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/loyalty-history")
@require_operator
def customer_loyalty_history_route(customer_id: int):
    try:
        page, page_size = _page_args()
        result = customer_service.list_loyalty_history(customer_id, page=page, page_size=page_size)
        return jsonify(result), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list loyalty history")
        return jsonify({"error": "Internal server error"}), 500

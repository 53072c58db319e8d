# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/laundry/routes/orders.py
"""
Order API Routes

WHY: Checkout creates orders; the counter staff then walk each order through
received -> processing -> washing -> drying -> ready -> completed.

SECURITY:
- Every route is scoped to the operator's branch (X-Branch-Id)
- Forced transitions require the admin role and a reason
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LaundryError, error_response
from ..services import order_service
from ..decorators import require_operator, require_admin


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# ORDER CREATION
# =============================================================================

@orders_bp.post("")
@require_operator
def create_order_route():
    """
    Create an order at checkout.

    Request body:
    {
        "customer_name": "Ana",
        "customer_phone": "555-0101",
        "customer_id": 7,                       (optional)
        "items": [{"clothing_item": "Shirt", "service": "wash",
                   "quantity": 2, "unit_price": "10.00"}],
        "subtotal": "20.00", "tax": "1.70", "total": "21.70",
        "payment_method": "cash" | "card" | "pay_later",
        "loyalty_points_earned": 2,             (optional)
        "loyalty_points_redeemed": 0,           (optional)
        "estimated_pickup": "2026-01-05T10:00:00Z",  (optional)
        "notes": "..."                          (optional)
    }

    Returns:
        201: {"order": {...}}
        400: Invalid input
        404: Customer not found
        409: Redemption exceeds the customer's points
    """
    try:
        data = request.get_json(silent=True)
        order = order_service.create_order(data, branch_id=g.branch_id, seller_name=g.operator_name)
        return jsonify({"order": order.to_dict()}), 201

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("")
@require_operator
def list_orders_route():
    """
    List the branch's orders, newest first.

    Query params:
    - status: Filter by status (optional)
    """
    try:
        orders = order_service.list_orders(branch_id=g.branch_id, status=request.args.get("status"))
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_operator
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, branch_id=g.branch_id)
        return jsonify({"order": order.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

@orders_bp.patch("/<int:order_id>/status")
@require_operator
def update_status_route(order_id: int):
    """
    Advance an order to its next status.

    Request body:
    {
        "status": "processing",
        "notify": true          (optional, SMS/email to the customer)
    }

    Returns:
        200: {"order": {...}}
        404: Order not found in this branch
        409: Not the next status, or changed concurrently
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.update_status(
            order_id,
            data.get("status"),
            branch_id=g.branch_id,
            notify=bool(data.get("notify")),
        )
        return jsonify({"order": order.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/force-status")
@require_operator
@require_admin
def force_status_route(order_id: int):
    """
    Admin override for data repair: set any status.

    Request body:
    {
        "status": "received",
        "reason": "Marked completed by mistake"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.force_transition(
            order_id,
            data.get("status"),
            branch_id=g.branch_id,
            actor=g.operator_name,
            reason=data.get("reason") or "",
        )
        return jsonify({"order": order.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to force order status")
        return jsonify({"error": "Internal server error"}), 500

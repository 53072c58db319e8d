# Overview: Flask API routes for delivery intake, dispatch and driver tracking.

# backend/laundry/routes/delivery.py
"""
Delivery API Routes

Two blueprints:
- public_delivery_bp: intake form on the public website (no operator context)
- delivery_bp: dispatcher and driver endpoints, scoped to the operator's branch
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LaundryError, error_response
from ..services import delivery_service
from ..decorators import require_operator


public_delivery_bp = Blueprint("public_delivery", __name__, url_prefix="/delivery")
delivery_bp = Blueprint("delivery", __name__, url_prefix="/api/delivery")


# =============================================================================
# PUBLIC INTAKE
# =============================================================================

@public_delivery_bp.post("/orders")
def submit_delivery_order_route():
    """
    Submit a pickup request.

    Request body:
    {
        "branch_code": "DT",
        "customer_name": "Ana",
        "customer_phone": "555-0101",
        "address": "12 Main St",
        "items": [{"clothing_item": "Shirt", "service": "wash"}],
        "pickup_time": "2026-01-05T10:00:00Z",   (optional)
        "dropoff_time": "2026-01-06T18:00:00Z",  (optional)
        "dropoff_lat": 40.71, "dropoff_lng": -74.0  (optional)
    }

    Returns:
        201: {"order_id": 12, "order_number": "DT-0012"}
        400: Invalid input
        404: Branch not found
    """
    try:
        result = delivery_service.submit_delivery_order(request.get_json(silent=True))
        return jsonify(result), 201

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to submit delivery order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DISPATCH
# =============================================================================

@delivery_bp.get("/orders")
@require_operator
def list_delivery_orders_route():
    """
    Query params:
    - driver_id: Only orders assigned to this driver (optional)
    """
    try:
        rows = delivery_service.list_delivery_orders(
            branch_id=g.branch_id,
            driver_id=request.args.get("driver_id"),
        )
        return jsonify({"deliveries": rows}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list delivery orders")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.post("/assign")
@require_operator
def assign_driver_route():
    """Request body: {"order_id": 12, "driver_id": "driver-7"}"""
    try:
        data = request.get_json(silent=True) or {}
        delivery = delivery_service.assign_driver(
            data.get("order_id"),
            data.get("driver_id"),
            branch_id=g.branch_id,
        )
        return jsonify({"delivery": delivery.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to assign driver")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.post("/finalize")
@require_operator
def finalize_delivery_route():
    """
    Replace placeholder items with real pricing.

    Request body:
    {
        "order_id": 12,
        "items": [{"clothing_item": "Shirt", "service": "wash",
                   "quantity": 3, "unit_price": "4.50"}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = delivery_service.finalize_delivery_pricing(
            data.get("order_id"),
            data.get("items"),
            branch_id=g.branch_id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to finalize delivery pricing")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DRIVER TRACKING
# =============================================================================

@delivery_bp.post("/driver-location")
@require_operator
def driver_location_route():
    """Request body: {"driver_id": "driver-7", "lat": 40.71, "lng": -74.0}"""
    try:
        data = request.get_json(silent=True) or {}
        location = delivery_service.record_driver_location(
            data.get("driver_id"),
            data.get("lat"),
            data.get("lng"),
        )
        return jsonify({"location": location.to_dict()}), 200

    except LaundryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record driver location")
        return jsonify({"error": "Internal server error"}), 500


@delivery_bp.get("/driver-locations")
@require_operator
def driver_locations_route():
    try:
        locations = delivery_service.list_driver_locations()
        return jsonify({"locations": [loc.to_dict() for loc in locations]}), 200

    except Exception:
        current_app.logger.exception("Failed to list driver locations")
        return jsonify({"error": "Internal server error"}), 500

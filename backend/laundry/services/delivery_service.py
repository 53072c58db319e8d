# Overview: Service-layer operations for delivery; public intake, dispatch and driver tracking.

"""
Delivery Orders

WHY: Customers submit pickup requests from a public page that knows only
the branch code. Staff later dispatch a driver and price the items.

FLOW:
1. submit_delivery_order - public intake, order created as delivery_pending
   with placeholder pricing (quantity 1, price 0 unless given)
2. assign_driver - dispatcher picks a driver; order enters the normal
   flow (delivery_pending -> received)
3. finalize_delivery_pricing - staff replace the placeholder items with
   real prices before processing starts
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import InvariantViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Branch, DeliveryOrder, DriverLocation, Order, Payment
from ..money import to_cents
from ..time_utils import utcnow
from ..validation import parse_coordinate, parse_datetime, parse_int, require_text
from . import order_service
from .concurrency import begin_write, run_with_retry
from .geo_service import Coordinates, route_distance
from .pricing_service import price_lines, summarize_items, tax_rate_for_branch

ONLINE_SELLER = "online"

# Orders whose placeholder pricing may still be replaced.
REPRICEABLE_STATUSES = frozenset({order_service.STATUS_DELIVERY_PENDING, order_service.STATUS_RECEIVED})


def _coordinates(lat, lng) -> Coordinates | None:
    if lat is None or lng is None:
        return None
    return Coordinates(lat=lat, lng=lng)


# =============================================================================
# PUBLIC INTAKE
# =============================================================================

def submit_delivery_order(payload: dict) -> dict:
    """
    Create a delivery_pending order from the public intake form.

    Returns only {"order_id", "order_number"}. An unknown or inactive
    branch code yields a generic "Branch not found".
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    branch_code = require_text(payload, "branch_code", 32)
    address = require_text(payload, "address", 255)
    pickup_time = parse_datetime(payload.get("pickup_time"), "pickup_time")
    dropoff_time = parse_datetime(payload.get("dropoff_time"), "dropoff_time")
    dropoff_lat = parse_coordinate(payload.get("dropoff_lat"), "dropoff_lat", limit=90)
    dropoff_lng = parse_coordinate(payload.get("dropoff_lng"), "dropoff_lng", limit=180)

    raw_items = payload.get("items") if payload.get("items") is not None else []
    # Tax is assigned with the real pricing (finalize_delivery_pricing).
    placeholder = summarize_items(
        price_lines(raw_items, default_quantity=1, default_price=Decimal("0")),
        Decimal("0"),
    )

    data = order_service.parse_order_payload({
        "customer_name": payload.get("customer_name"),
        "customer_phone": payload.get("customer_phone"),
        "items": raw_items,
        "subtotal": str(placeholder.subtotal),
        "tax": str(placeholder.tax),
        "total": str(placeholder.total),
        "payment_method": order_service.PAYMENT_CASH,
        "notes": address,
        "estimated_pickup": payload.get("pickup_time"),
    }, default_quantity=1, default_price=Decimal("0"))

    branch = db.session.query(Branch).filter_by(code=branch_code, is_active=True).first()
    if not branch:
        raise NotFoundError("Branch not found")
    branch_id = branch.id

    # Estimated outside the write transaction: may call an external service.
    estimate = None
    start = _coordinates(branch.lat, branch.lng)
    end = _coordinates(dropoff_lat, dropoff_lng)
    if start and end:
        estimate = route_distance(start, end)

    def _op():
        begin_write()
        branch = db.session.get(Branch, branch_id)

        order = order_service._create_order_locked(
            data,
            branch=branch,
            seller_name=ONLINE_SELLER,
            status=order_service.STATUS_DELIVERY_PENDING,
        )

        delivery = DeliveryOrder(
            order_id=order.id,
            pickup_time=pickup_time,
            dropoff_time=dropoff_time,
            pickup_address=branch.address,
            pickup_lat=branch.lat,
            pickup_lng=branch.lng,
            dropoff_address=address,
            dropoff_lat=dropoff_lat,
            dropoff_lng=dropoff_lng,
        )
        if estimate:
            delivery.distance_meters = estimate.distance_meters
            delivery.duration_seconds = estimate.duration_seconds

        db.session.add(delivery)
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on_integrity=True)
    current_app.logger.info("Delivery order %s submitted", order.order_number)
    return {"order_id": order.id, "order_number": order.order_number}


# =============================================================================
# DISPATCH
# =============================================================================

def _get_delivery(order_id: int, branch_id: int) -> tuple[Order, DeliveryOrder]:
    order = order_service.get_order(order_id, branch_id=branch_id)
    delivery = db.session.query(DeliveryOrder).filter_by(order_id=order.id).first()
    if not delivery:
        raise NotFoundError(f"Delivery order {order_id} not found")
    return order, delivery


def assign_driver(order_id, driver_id, *, branch_id: int) -> DeliveryOrder:
    """
    Assign (or reassign) a driver. The first assignment moves the order
    from delivery_pending into the regular flow.
    """
    order_id = parse_int(order_id, "order_id")
    if not driver_id or not str(driver_id).strip():
        raise ValidationError("driver_id is required")
    driver_id = str(driver_id).strip()

    def _op():
        begin_write()
        order, delivery = _get_delivery(order_id, branch_id)
        if order.status == order_service.STATUS_COMPLETED:
            raise InvariantViolation(f"Order {order_id} is already completed")

        delivery.driver_id = driver_id
        delivery.assigned_at = utcnow()
        if order.status == order_service.STATUS_DELIVERY_PENDING:
            order_service.advance(order, order_service.STATUS_RECEIVED)
        db.session.commit()
        return delivery

    delivery = run_with_retry(_op)
    current_app.logger.info("Order %s assigned to driver %s", order_id, driver_id)
    return delivery


def finalize_delivery_pricing(order_id, items, *, branch_id: int) -> Order:
    """
    Replace the placeholder items of a delivery order with real pricing.

    Allowed only before processing starts and before any payment
    references the order. Totals are recomputed with the branch tax rate.
    Delivery orders carry no customer account, so no balance changes.
    """
    order_id = parse_int(order_id, "order_id")
    priced = price_lines(items if items is not None else [])
    if not priced:
        raise ValidationError("items must not be empty")

    def _op():
        begin_write()
        order, _delivery = _get_delivery(order_id, branch_id)
        if order.status not in REPRICEABLE_STATUSES:
            raise InvariantViolation(
                f"Order {order_id} can no longer be repriced",
                details={"current_status": order.status},
            )
        if order.customer_id is not None or order.payment_method != order_service.PAYMENT_CASH:
            raise InvariantViolation(f"Order {order_id} has account-linked pricing")
        if db.session.query(Payment.id).filter_by(order_id=order.id).first():
            raise InvariantViolation(f"Order {order_id} already has payments")

        summary = summarize_items(priced, tax_rate_for_branch(order.branch))
        order.items = priced
        order.subtotal_cents = to_cents(summary.subtotal)
        order.tax_cents = to_cents(summary.tax)
        order.total_cents = to_cents(summary.total)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Delivery order %s priced at %s", order.order_number, order.to_dict()["total"])
    return order


def list_delivery_orders(*, branch_id: int, driver_id: str | None = None) -> list[dict]:
    query = (
        db.session.query(DeliveryOrder, Order)
        .join(Order, Order.id == DeliveryOrder.order_id)
        .filter(Order.branch_id == branch_id)
    )
    if driver_id:
        query = query.filter(DeliveryOrder.driver_id == driver_id)

    rows = []
    for delivery, order in query.order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id.desc()).all():
        row = delivery.to_dict()
        row["order"] = {
            "id": order.id,
            "order_number": order.order_number,
            "status": order.status,
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "total": order.to_dict()["total"],
        }
        rows.append(row)
    return rows


# =============================================================================
# DRIVER TRACKING
# =============================================================================

def record_driver_location(driver_id, lat, lng) -> DriverLocation:
    """Upsert the latest GPS fix for a driver."""
    if not driver_id or not str(driver_id).strip():
        raise ValidationError("driver_id is required")
    lat = parse_coordinate(lat, "lat", limit=90)
    lng = parse_coordinate(lng, "lng", limit=180)
    if lat is None or lng is None:
        raise ValidationError("lat and lng are required")

    driver_id = str(driver_id).strip()

    def _op():
        location = db.session.get(DriverLocation, driver_id)
        if location is None:
            location = DriverLocation(driver_id=driver_id, lat=lat, lng=lng, updated_at=utcnow())
            db.session.add(location)
        else:
            location.lat = lat
            location.lng = lng
            location.updated_at = utcnow()
        db.session.commit()
        return location

    return run_with_retry(_op, retry_on_integrity=True)


def list_driver_locations() -> list[DriverLocation]:
    return db.session.query(DriverLocation).order_by(DriverLocation.driver_id).all()

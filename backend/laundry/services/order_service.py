# Overview: Service-layer operations for orders; creation, status transitions and their financial side effects.

"""
Order Ledger

WHY: An order is the only thing that moves money onto a customer's
account. Creating it and applying its balance/loyalty effects must be a
single unit of work.

DESIGN PRINCIPLES:
- Validate everything before the first write (fail closed).
- Order row, pay-later balance, loyalty deltas and total_spent are written
  in one DB transaction.
- The pay-later balance effect is idempotent per order (balance_applied_at),
  so a reconciliation pass may re-run it safely.
- Status only moves forward one step at a time via advance(); the admin
  override is a separate, logged operation (force_transition).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, update

from ..errors import ConflictError, InvariantViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Branch, Customer, Order, Payment
from ..money import format_cents, parse_money, round_half_up, to_cents
from ..time_utils import utcnow
from ..validation import parse_datetime, parse_int, require_choice, require_text
from . import customer_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .pricing_service import price_lines
from .sequence_service import next_order_number


# =============================================================================
# STATUS GRAPH (CONSTANTS)
# =============================================================================

STATUS_DELIVERY_PENDING = "delivery_pending"
STATUS_RECEIVED = "received"
STATUS_PROCESSING = "processing"
STATUS_WASHING = "washing"
STATUS_DRYING = "drying"
STATUS_READY = "ready"
STATUS_COMPLETED = "completed"

ORDER_FLOW = [
    STATUS_RECEIVED,
    STATUS_PROCESSING,
    STATUS_WASHING,
    STATUS_DRYING,
    STATUS_READY,
    STATUS_COMPLETED,
]

# Each status has exactly one successor; completed is terminal.
TRANSITIONS = {current: nxt for current, nxt in zip(ORDER_FLOW, ORDER_FLOW[1:])}
TRANSITIONS[STATUS_DELIVERY_PENDING] = STATUS_RECEIVED

VALID_STATUSES = frozenset(ORDER_FLOW) | {STATUS_DELIVERY_PENDING}
INITIAL_STATUSES = frozenset({STATUS_RECEIVED, STATUS_DELIVERY_PENDING})


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_PAY_LATER = "pay_later"

VALID_PAYMENT_METHODS = frozenset({PAYMENT_CASH, PAYMENT_CARD, PAYMENT_PAY_LATER})


# =============================================================================
# INPUT
# =============================================================================

@dataclass
class OrderInput:
    customer_name: str
    customer_phone: str
    items: list
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    payment_method: str
    customer_id: int | None = None
    estimated_pickup: datetime | None = None
    actual_pickup: datetime | None = None
    notes: str | None = None
    loyalty_points_earned: int = 0
    loyalty_points_redeemed: int = 0


def parse_order_payload(
    payload: dict,
    *,
    default_quantity: int | None = None,
    default_price: Decimal | None = None,
) -> OrderInput:
    """
    Validate and normalize an order payload.

    Money fields are decimal strings. total must equal subtotal + tax, and
    subtotal must equal the rounded sum of the priced item lines.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    customer_name = require_text(payload, "customer_name", 255)
    customer_phone = require_text(payload, "customer_phone", 32)

    items = price_lines(
        payload.get("items") if payload.get("items") is not None else [],
        default_quantity=default_quantity,
        default_price=default_price,
    )

    subtotal = parse_money(payload.get("subtotal"), "subtotal")
    tax = parse_money(payload.get("tax"), "tax")
    total = parse_money(payload.get("total"), "total")

    if subtotal < 0 or tax < 0 or total < 0:
        raise ValidationError("subtotal, tax and total must be >= 0")
    if subtotal + tax != total:
        raise ValidationError(
            "total must equal subtotal + tax",
            details={"subtotal": str(subtotal), "tax": str(tax), "total": str(total)},
        )

    lines_subtotal = round_half_up(sum((Decimal(i["line_total"]) for i in items), Decimal("0")))
    if lines_subtotal != subtotal:
        raise ValidationError(
            "subtotal does not match item lines",
            details={"subtotal": str(subtotal), "lines_subtotal": str(lines_subtotal)},
        )

    payment_method = require_choice(payload.get("payment_method"), "payment_method", VALID_PAYMENT_METHODS)

    customer_id = payload.get("customer_id")
    if customer_id is not None:
        customer_id = parse_int(customer_id, "customer_id")

    earned = parse_int(payload.get("loyalty_points_earned") or 0, "loyalty_points_earned")
    redeemed = parse_int(payload.get("loyalty_points_redeemed") or 0, "loyalty_points_redeemed")
    if earned < 0 or redeemed < 0:
        raise ValidationError("loyalty points must be >= 0")

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")

    return OrderInput(
        customer_name=customer_name,
        customer_phone=customer_phone,
        items=items,
        subtotal=subtotal,
        tax=tax,
        total=total,
        payment_method=payment_method,
        customer_id=customer_id,
        estimated_pickup=parse_datetime(payload.get("estimated_pickup"), "estimated_pickup"),
        actual_pickup=parse_datetime(payload.get("actual_pickup"), "actual_pickup"),
        notes=notes,
        loyalty_points_earned=earned,
        loyalty_points_redeemed=redeemed,
    )


# =============================================================================
# ORDER CREATION
# =============================================================================

def _resolve_customer(data: OrderInput, branch: Branch) -> Customer | None:
    if data.customer_id is not None:
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=data.customer_id).populate_existing()
        ).first()
        if not customer:
            raise NotFoundError(f"Customer {data.customer_id} not found")
        if not customer.is_active:
            raise ValidationError(f"Customer {data.customer_id} is inactive")
        return customer

    if data.payment_method == PAYMENT_PAY_LATER:
        # Pay-later needs an account to carry the balance.
        return customer_service.get_or_create_by_phone(
            phone=data.customer_phone,
            name=data.customer_name,
            branch_id=branch.id,
        )

    if data.loyalty_points_earned or data.loyalty_points_redeemed:
        raise ValidationError("loyalty points require a customer_id")
    return None


def apply_pay_later_balance(order: Order) -> bool:
    """
    Add a pay-later order's total to its customer's balance exactly once.

    The balance_applied_at marker and the balance increment are written in
    the same transaction, so running this twice (retry, reconciliation)
    never double-applies. Returns True when the balance was changed.
    """
    if order.payment_method != PAYMENT_PAY_LATER or order.customer_id is None:
        return False

    result = db.session.execute(
        update(Order)
        .where(Order.id == order.id, Order.balance_applied_at.is_(None))
        .values(balance_applied_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return False

    customer_service.adjust_balance(order.customer_id, order.total_cents)
    db.session.expire(order, ["balance_applied_at"])
    return True


def _create_order_locked(
    data: OrderInput,
    *,
    branch: Branch,
    seller_name: str,
    status: str = STATUS_RECEIVED,
) -> Order:
    """
    Write an order and its side effects inside the caller's transaction.

    Caller is responsible for begin_write() and commit.
    """
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"Orders cannot be created with status {status}")
    if not branch.is_active:
        raise ValidationError(f"Branch {branch.code} is inactive")

    customer = _resolve_customer(data, branch)

    if data.loyalty_points_redeemed and data.loyalty_points_redeemed > customer.loyalty_points:
        raise InvariantViolation(
            "Loyalty redemption exceeds available points",
            details={"available": customer.loyalty_points, "requested": data.loyalty_points_redeemed},
        )

    order_number = next_order_number(branch_id=branch.id, prefix=branch.code)

    order = Order(
        branch_id=branch.id,
        order_number=order_number,
        customer_id=customer.id if customer else None,
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
        items=data.items,
        subtotal_cents=to_cents(data.subtotal),
        tax_cents=to_cents(data.tax),
        total_cents=to_cents(data.total),
        payment_method=data.payment_method,
        status=status,
        estimated_pickup=data.estimated_pickup,
        actual_pickup=data.actual_pickup,
        seller_name=seller_name,
        notes=data.notes,
        loyalty_points_earned=data.loyalty_points_earned,
        loyalty_points_redeemed=data.loyalty_points_redeemed,
    )
    db.session.add(order)
    db.session.flush()

    if customer is not None:
        apply_pay_later_balance(order)

        if data.loyalty_points_redeemed:
            customer_service.adjust_loyalty(
                customer.id,
                -data.loyalty_points_redeemed,
                f"Redeemed on order {order.id} ({order.order_number})",
                order_id=order.id,
            )
        if data.loyalty_points_earned:
            customer_service.adjust_loyalty(
                customer.id,
                data.loyalty_points_earned,
                f"Earned on order {order.id} ({order.order_number})",
                order_id=order.id,
            )

        customer_service.record_spend(customer.id, order.total_cents)

    return order


def create_order(payload: dict, *, branch_id: int, seller_name: str) -> Order:
    """
    Create an order at checkout.

    Args:
        payload: Order fields (see parse_order_payload)
        branch_id: Branch of the authenticated operator
        seller_name: Operator identity

    Returns:
        Created order

    Raises:
        ValidationError: malformed payload
        NotFoundError: branch or customer_id does not resolve
        InvariantViolation: redemption exceeds the customer's points
    """
    data = parse_order_payload(payload)
    if not seller_name:
        raise ValidationError("seller_name is required")

    def _op():
        begin_write()
        branch = db.session.get(Branch, branch_id)
        if not branch:
            raise NotFoundError(f"Branch {branch_id} not found")

        order = _create_order_locked(data, branch=branch, seller_name=seller_name)
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on_integrity=True)
    current_app.logger.info(
        "Order %s created (branch=%s, method=%s, total=%s)",
        order.order_number, order.branch_id, order.payment_method, format_cents(order.total_cents),
    )
    return order


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def next_status(status: str) -> str | None:
    return TRANSITIONS.get(status)


def _compare_and_swap_status(order: Order, current: str, target: str) -> None:
    result = db.session.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == current)
        .values(status=target, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise ConflictError(
            f"Order {order.id} status changed concurrently",
            details={"expected_status": current},
        )
    db.session.expire(order, ["status", "updated_at"])


def advance(order: Order, target_status: str) -> Order:
    """
    Move an order one step forward along the status graph.

    target_status must be the immediate successor of the current status.
    Skips and backward moves raise InvariantViolation without writing.
    Runs inside the caller's transaction.
    """
    require_choice(target_status, "status", VALID_STATUSES)

    current = order.status
    expected = next_status(current)
    if expected != target_status:
        raise InvariantViolation(
            f"Invalid status transition {current} -> {target_status}",
            details={"current_status": current, "allowed_next": expected},
        )

    _compare_and_swap_status(order, current, target_status)
    return order


def get_order(order_id: int, *, branch_id: int | None = None) -> Order:
    """Load an order; branch-scoped lookups hide other branches' orders."""
    order = db.session.get(Order, order_id)
    if not order or (branch_id is not None and order.branch_id != branch_id):
        raise NotFoundError(f"Order {order_id} not found")
    return order


def update_status(order_id: int, new_status: str, *, branch_id: int, notify: bool = False) -> Order:
    """
    Advance an order's status and optionally notify the customer.

    Notification runs after the commit and never affects the transition.
    """
    def _op():
        begin_write()
        order = get_order(order_id, branch_id=branch_id)
        advance(order, new_status)
        if new_status == STATUS_COMPLETED and order.actual_pickup is None:
            order.actual_pickup = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op)

    if notify:
        from .notification_service import notify_status_change
        notify_status_change(order)

    return order


def force_transition(order_id: int, target_status: str, *, branch_id: int, actor: str, reason: str) -> Order:
    """
    Admin override: set any known status, bypassing the forward-only graph.

    This is an escape hatch for data repair, not a designed transition.
    Requires a reason and is always logged at WARNING level.
    """
    require_choice(target_status, "status", VALID_STATUSES)
    if not reason or not reason.strip():
        raise ValidationError("reason is required for a forced transition")
    if not actor:
        raise ValidationError("actor is required for a forced transition")

    def _op():
        begin_write()
        order = get_order(order_id, branch_id=branch_id)
        previous = order.status
        if previous == target_status:
            raise ValidationError(f"Order {order_id} is already {target_status}")
        _compare_and_swap_status(order, previous, target_status)
        db.session.commit()
        return order, previous

    order, previous = run_with_retry(_op)
    current_app.logger.warning(
        "Forced status transition on order %s: %s -> %s by %s (reason: %s)",
        order.order_number, previous, target_status, actor, reason.strip(),
    )
    return order


# =============================================================================
# QUERIES
# =============================================================================

def list_orders(*, branch_id: int, status: str | None = None, limit: int = 200) -> list[Order]:
    query = db.session.query(Order).filter_by(branch_id=branch_id)
    if status:
        require_choice(status, "status", VALID_STATUSES)
        query = query.filter_by(status=status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def list_customer_orders(customer_id: int, *, branch_id: int) -> list[dict]:
    """
    Customer's orders in a branch with paid/remaining per order.

    paid sums the payments that reference the order; account-level
    payments (no order_id) only show up in the customer's balance.
    """
    customer_service.get_customer(customer_id)

    paid_by_order = dict(
        db.session.query(Payment.order_id, func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.customer_id == customer_id, Payment.order_id.isnot(None))
        .group_by(Payment.order_id)
        .all()
    )

    orders = (
        db.session.query(Order)
        .filter_by(customer_id=customer_id, branch_id=branch_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )

    rows = []
    for order in orders:
        paid = int(paid_by_order.get(order.id, 0))
        row = order.to_dict()
        row["paid"] = format_cents(paid)
        row["remaining"] = format_cents(order.total_cents - paid)
        rows.append(row)
    return rows

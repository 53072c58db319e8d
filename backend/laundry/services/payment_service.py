# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Recording

WHY: Pay-later customers settle their balance over time. Every payment is
an immutable ledger row and reduces the customer's balance by exactly its
amount.

DESIGN PRINCIPLES:
- Payments are append-only: never updated or deleted
- A payment always targets a customer; the order reference is optional
- Orders can only be referenced from the branch they belong to
- No clamping: an overpayment leaves a negative balance (store credit)
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Order, Payment
from ..money import format_cents, parse_money, to_cents
from ..validation import parse_int
from . import customer_service
from .concurrency import begin_write, run_with_retry
from .customer_service import paginate


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"

VALID_PAYMENT_METHODS = frozenset({METHOD_CASH, METHOD_CARD})


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    *,
    customer_id,
    amount,
    payment_method: str,
    received_by: str,
    branch_id: int,
    order_id=None,
    notes: str | None = None,
) -> Payment:
    """
    Record a payment against a customer's balance.

    Args:
        customer_id: Customer paying (required)
        amount: Decimal string, must be > 0
        payment_method: cash or card
        received_by: Operator identity
        branch_id: Branch of the recording operator
        order_id: Order being paid (optional, same branch and customer)
        notes: Free text (optional)

    Returns:
        Payment record

    Raises:
        ValidationError: invalid amount, method or missing operator
        NotFoundError: customer or order does not resolve
    """
    if customer_id is None:
        raise ValidationError("customer_id is required")
    customer_id = parse_int(customer_id, "customer_id")
    if order_id is not None:
        order_id = parse_int(order_id, "order_id")

    amount = parse_money(amount, "amount")
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    amount_cents = to_cents(amount)

    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {sorted(VALID_PAYMENT_METHODS)}"
        )
    if not received_by:
        raise ValidationError("received_by is required")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    if notes is not None and len(notes) > 255:
        raise ValidationError("notes exceeds max length 255")

    def _op():
        begin_write()
        customer = db.session.get(Customer, customer_id)
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")

        if order_id is not None:
            order = db.session.get(Order, order_id)
            # Same message for "missing" and "other branch": no cross-branch probing.
            if not order or order.branch_id != branch_id:
                raise NotFoundError(f"Order {order_id} not found")
            if order.customer_id != customer_id:
                raise ValidationError(f"Order {order_id} does not belong to customer {customer_id}")

        payment = Payment(
            customer_id=customer_id,
            order_id=order_id,
            branch_id=branch_id,
            amount_cents=amount_cents,
            payment_method=payment_method,
            received_by=received_by,
            notes=notes,
        )
        db.session.add(payment)
        db.session.flush()

        customer_service.adjust_balance(customer_id, -amount_cents)

        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info(
        "Payment %s recorded: customer=%s amount=%s by %s",
        payment.id, customer_id, format_cents(amount_cents), received_by,
    )
    return payment


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def list_customer_payments(customer_id: int, *, page: int = 1, page_size: int = 20) -> dict:
    """Paginated payment history for a customer, newest first."""
    customer_service.get_customer(customer_id)
    query = (
        db.session.query(Payment)
        .filter_by(customer_id=customer_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
    )
    return paginate(query, page=page, page_size=page_size)

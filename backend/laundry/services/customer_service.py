# Overview: Service-layer operations for customer accounts; balance and loyalty primitives.

"""
Customer Account

WHY: balance_due and loyalty_points are derived from orders and payments.
They are mutated only here, and only by the order ledger and the payment
recorder.

CONCURRENCY: Every financial mutation is a single UPDATE with an
arithmetic SET clause, so concurrent orders/payments for the same customer
cannot lose each other's writes (no read-modify-write in Python).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.util import identity_key

from ..errors import ConflictError, InvariantViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, LoyaltyHistory
from ..validation import ModelValidationPolicy, validate_payload


CUSTOMER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"phone", "name", "nickname", "email", "address", "branch_id"}),
    required_on_create=frozenset({"phone", "name"}),
)

CUSTOMER_PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"phone", "name", "nickname", "email", "address"}),
)


# =============================================================================
# FINANCIAL PRIMITIVES
# =============================================================================

def _refresh(customer_id: int) -> None:
    customer = db.session.identity_map.get(identity_key(Customer, customer_id))
    if customer is not None:
        db.session.expire(customer, ["balance_due_cents", "total_spent_cents", "loyalty_points"])


def adjust_balance(customer_id: int, delta_cents: int) -> None:
    """
    Atomically add delta_cents to the customer's balance.

    Positive deltas come from pay-later orders, negative deltas from
    payments. Not clamped at zero. Runs inside the caller's transaction;
    the caller commits.
    """
    if isinstance(delta_cents, bool) or not isinstance(delta_cents, int):
        raise ValidationError("balance delta must be an integer number of cents")

    result = db.session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(balance_due_cents=Customer.balance_due_cents + delta_cents)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise NotFoundError(f"Customer {customer_id} not found")
    _refresh(customer_id)


def record_spend(customer_id: int, amount_cents: int) -> None:
    """Atomically add an order total to total_spent (never decreases)."""
    if amount_cents < 0:
        raise ValidationError("spend amount must be >= 0")

    result = db.session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(total_spent_cents=Customer.total_spent_cents + amount_cents)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise NotFoundError(f"Customer {customer_id} not found")
    _refresh(customer_id)


def adjust_loyalty(customer_id: int, delta: int, description: str, order_id: int | None = None) -> LoyaltyHistory:
    """
    Atomically apply a loyalty point delta and append a history row.

    The UPDATE only matches while the resulting balance stays >= 0, so a
    redemption racing another redemption cannot overdraw the account.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("loyalty delta must be an integer")
    if delta == 0:
        raise ValidationError("loyalty delta must be non-zero")
    if not description:
        raise ValidationError("description is required")

    result = db.session.execute(
        update(Customer)
        .where(Customer.id == customer_id, Customer.loyalty_points + delta >= 0)
        .values(loyalty_points=Customer.loyalty_points + delta)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        points = db.session.query(Customer.loyalty_points).filter_by(id=customer_id).scalar()
        if points is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        raise InvariantViolation(
            "Insufficient loyalty points",
            details={"available": points, "requested": -delta},
        )
    _refresh(customer_id)

    entry = LoyaltyHistory(
        customer_id=customer_id,
        order_id=order_id,
        change=delta,
        description=description,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


# =============================================================================
# PROFILE
# =============================================================================

def get_customer(customer_id: int, *, include_inactive: bool = True) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer or (not include_inactive and not customer.is_active):
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def find_by_phone(phone: str) -> Customer | None:
    return db.session.query(Customer).filter_by(phone=phone.strip()).first()


def create_customer(payload: dict) -> Customer:
    """Create a customer from a profile payload (financial fields rejected)."""
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_CREATE_POLICY, partial=False)

    customer = Customer(**patch)
    db.session.add(customer)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A customer with this phone or nickname already exists")

    current_app.logger.info("Customer %s created", customer.id)
    return customer


def get_or_create_by_phone(*, phone: str, name: str, branch_id: int | None = None) -> Customer:
    """
    Resolve the checkout customer by phone, creating the account when absent.

    Runs inside the caller's transaction (flush only). A deactivated
    account with this phone is rejected, not reused.
    """
    customer = find_by_phone(phone)
    if customer:
        if not customer.is_active:
            raise ValidationError(f"Customer {customer.id} is inactive")
        return customer

    customer = Customer(phone=phone.strip(), name=name.strip(), branch_id=branch_id)
    db.session.add(customer)
    db.session.flush()
    return customer


def update_customer_profile(customer_id: int, payload: dict) -> Customer:
    """
    Update profile fields only.

    balance_due / loyalty_points / total_spent are rejected: they are
    derived from orders and payments.
    """
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_PROFILE_POLICY, partial=True)

    customer = get_customer(customer_id)
    for key, value in patch.items():
        setattr(customer, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A customer with this phone or nickname already exists")
    return customer


def deactivate_customer(customer_id: int) -> Customer:
    """Soft delete. Orders and payments keep referencing the row."""
    customer = get_customer(customer_id)
    customer.is_active = False
    db.session.commit()
    return customer


def list_loyalty_history(customer_id: int, *, page: int = 1, page_size: int = 20) -> dict:
    get_customer(customer_id)
    query = (
        db.session.query(LoyaltyHistory)
        .filter_by(customer_id=customer_id)
        .order_by(LoyaltyHistory.created_at.desc(), LoyaltyHistory.id.desc())
    )
    return paginate(query, page=page, page_size=page_size)


def paginate(query, *, page: int, page_size: int) -> dict:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= page_size <= 100:
        raise ValidationError("pageSize must be between 1 and 100")

    total = query.count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "data": [row.to_dict() for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }

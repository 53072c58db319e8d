# Overview: Service-layer operations for ledger reconciliation; recompute customer balances from orders and payments.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Order, Payment
from ..money import format_cents
from . import customer_service
from .concurrency import begin_write, run_with_retry
from .order_service import PAYMENT_PAY_LATER, apply_pay_later_balance


@dataclass(frozen=True)
class BalanceDrift:
    customer_id: int
    recorded_cents: int
    expected_cents: int

    @property
    def delta_cents(self) -> int:
        return self.expected_cents - self.recorded_cents

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "recorded": format_cents(self.recorded_cents),
            "expected": format_cents(self.expected_cents),
            "delta": format_cents(self.delta_cents),
        }


def apply_missing_balances() -> int:
    """
    Re-run the pay-later balance effect for orders that never had it applied.

    Idempotent: apply_pay_later_balance skips orders already marked.
    Returns the number of orders applied.
    """
    def _op():
        begin_write()
        pending = (
            db.session.query(Order)
            .filter(
                Order.payment_method == PAYMENT_PAY_LATER,
                Order.customer_id.isnot(None),
                Order.balance_applied_at.is_(None),
            )
            .order_by(Order.id)
            .all()
        )
        applied = sum(1 for order in pending if apply_pay_later_balance(order))
        db.session.commit()
        return applied

    applied = run_with_retry(_op)
    if applied:
        current_app.logger.info("Applied missing pay-later balance on %d orders", applied)
    return applied


def expected_balances() -> dict[int, int]:
    """customer_id -> sum(pay-later order totals) - sum(payments), in cents."""
    charged = dict(
        db.session.query(Order.customer_id, func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.payment_method == PAYMENT_PAY_LATER, Order.customer_id.isnot(None))
        .group_by(Order.customer_id)
        .all()
    )
    paid = dict(
        db.session.query(Payment.customer_id, func.coalesce(func.sum(Payment.amount_cents), 0))
        .group_by(Payment.customer_id)
        .all()
    )
    expected = {}
    for customer_id in set(charged) | set(paid):
        expected[customer_id] = int(charged.get(customer_id, 0)) - int(paid.get(customer_id, 0))
    return expected


def find_drift() -> list[BalanceDrift]:
    expected = expected_balances()
    drift = []
    for customer_id, recorded in db.session.query(Customer.id, Customer.balance_due_cents).order_by(Customer.id):
        should_be = expected.get(customer_id, 0)
        if recorded != should_be:
            drift.append(BalanceDrift(customer_id=customer_id, recorded_cents=recorded, expected_cents=should_be))
    return drift


def reconcile(*, fix: bool = False) -> dict:
    """
    Check every customer balance against its orders and payments.

    Missing pay-later effects are always applied first (they are part of
    normal order creation). Remaining drift is reported, and corrected by
    an atomic delta only when fix=True.
    """
    applied = apply_missing_balances()
    drift = find_drift()

    for item in drift:
        current_app.logger.info(
            "Balance drift on customer %s: recorded=%s expected=%s",
            item.customer_id, format_cents(item.recorded_cents), format_cents(item.expected_cents),
        )

    fixed = 0
    if fix and drift:
        def _op():
            begin_write()
            # Recompute inside the write lock; drift may have moved.
            current = find_drift()
            for item in current:
                customer_service.adjust_balance(item.customer_id, item.delta_cents)
            db.session.commit()
            return len(current)

        fixed = run_with_retry(_op)
        current_app.logger.warning("Corrected balance drift on %d customers", fixed)

    return {
        "applied_orders": applied,
        "drift": [item.to_dict() for item in drift],
        "fixed": fixed,
    }

from __future__ import annotations

from ..extensions import db
from laundry.money import format_cents
from laundry.time_utils import to_utc_z


class Payment(db.Model):
    """
    Payment received against a customer's outstanding balance.

    Every payment reduces Customer.balance_due_cents by exactly
    amount_cents. order_id is optional: a payment may settle the account
    rather than a specific order.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_created", "customer_id", "created_at"),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)  # cash, card

    received_by = db.Column(db.String(128), nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))
    order = db.relationship("Order", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "branch_id": self.branch_id,
            "amount": format_cents(self.amount_cents),
            "payment_method": self.payment_method,
            "received_by": self.received_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

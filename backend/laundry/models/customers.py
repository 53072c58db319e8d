from __future__ import annotations

from ..extensions import db
from laundry.money import format_cents
from laundry.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer account with pay-later balance and loyalty points.

    FINANCIAL FIELDS: balance_due_cents, total_spent_cents and
    loyalty_points are mutated only through customer_service primitives
    (atomic increments), never through profile updates.

    balance_due_cents may be negative: an overpayment is kept as store credit.

    LIFECYCLE: Customers referenced by orders or payments are never
    deleted, only deactivated (is_active=False).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("phone", name="uq_customers_phone"),
        db.UniqueConstraint("nickname", name="uq_customers_nickname"),
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    phone = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    nickname = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "phone": self.phone,
            "name": self.name,
            "nickname": self.nickname,
            "email": self.email,
            "address": self.address,
            "balance_due": format_cents(self.balance_due_cents),
            "total_spent": format_cents(self.total_spent_cents),
            "loyalty_points": self.loyalty_points,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class LoyaltyHistory(db.Model):
    """
    Append-only ledger of loyalty point deltas.

    Audit only: the authoritative balance is Customer.loyalty_points.
    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "loyalty_history"
    __table_args__ = (
        db.Index("ix_loyalty_history_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    change = db.Column(db.Integer, nullable=False)  # Positive for earn, negative for redeem
    description = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", backref=db.backref("loyalty_history", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "change": self.change,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }

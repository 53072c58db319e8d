from __future__ import annotations

from ..extensions import db
from laundry.money import format_cents
from laundry.time_utils import to_utc_z


class Order(db.Model):
    """
    Laundry order document.

    SNAPSHOT: customer_name/customer_phone and the priced `items` are
    copied at creation so later customer deactivation or catalog price
    changes never alter a historical order.

    FINANCIALLY IMMUTABLE: subtotal/tax/total are fixed at creation
    (total_cents == subtotal_cents + tax_cents). Only status, pickup
    times and notes change afterwards. The one exception is a delivery
    placeholder, repriced by finalize_delivery_pricing while it is
    still unpaid cash with no customer attached.

    balance_applied_at marks that the pay-later balance effect has been
    applied to the customer, which makes re-applying it a no-op.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "order_number", name="uq_orders_branch_number"),
        db.Index("ix_orders_branch_status_created", "branch_id", "status", "created_at"),
        db.CheckConstraint("total_cents = subtotal_cents + tax_cents", name="ck_orders_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Human-readable order number (e.g., "DT-0042")
    order_number = db.Column(db.String(64), nullable=False, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)  # cash, card, pay_later
    status = db.Column(db.String(32), nullable=False, default="received", index=True)

    estimated_pickup = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_pickup = db.Column(db.DateTime(timezone=True), nullable=True)

    seller_name = db.Column(db.String(128), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    loyalty_points_earned = db.Column(db.Integer, nullable=False, default=0)
    loyalty_points_redeemed = db.Column(db.Integer, nullable=False, default=0)

    balance_applied_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("orders", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "items": self.items or [],
            "subtotal": format_cents(self.subtotal_cents),
            "tax": format_cents(self.tax_cents),
            "total": format_cents(self.total_cents),
            "payment_method": self.payment_method,
            "status": self.status,
            "estimated_pickup": to_utc_z(self.estimated_pickup),
            "actual_pickup": to_utc_z(self.actual_pickup),
            "seller_name": self.seller_name,
            "notes": self.notes,
            "loyalty_points_earned": self.loyalty_points_earned,
            "loyalty_points_redeemed": self.loyalty_points_redeemed,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

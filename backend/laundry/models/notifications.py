from __future__ import annotations

from ..extensions import db
from laundry.time_utils import to_utc_z


class Notification(db.Model):
    """
    Audit row for a customer notification attempt.

    One row per channel actually used. Delivery receipts and retries
    belong to the channel provider, not to this table.
    """
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    channel = db.Column(db.String(16), nullable=False)  # sms, email
    recipient = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False)  # SENT, FAILED
    order_status = db.Column(db.String(32), nullable=False)
    error = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("notifications", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "channel": self.channel,
            "recipient": self.recipient,
            "status": self.status,
            "order_status": self.order_status,
            "error": self.error,
            "created_at": to_utc_z(self.created_at),
        }

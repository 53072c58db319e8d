from __future__ import annotations

from ..extensions import db
from laundry.time_utils import to_utc_z


class DeliveryOrder(db.Model):
    """
    Delivery details for an order submitted through the public intake.

    One-to-one with Order. driver_id stays NULL until a dispatcher
    assigns the order.
    """
    __tablename__ = "delivery_orders"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_delivery_orders_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    pickup_time = db.Column(db.DateTime(timezone=True), nullable=True)
    dropoff_time = db.Column(db.DateTime(timezone=True), nullable=True)

    pickup_address = db.Column(db.String(255), nullable=True)
    pickup_lat = db.Column(db.Float, nullable=True)
    pickup_lng = db.Column(db.Float, nullable=True)

    dropoff_address = db.Column(db.String(255), nullable=False)
    dropoff_lat = db.Column(db.Float, nullable=True)
    dropoff_lng = db.Column(db.Float, nullable=True)

    distance_meters = db.Column(db.Float, nullable=True)
    duration_seconds = db.Column(db.Float, nullable=True)

    driver_id = db.Column(db.String(64), nullable=True, index=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("delivery", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "pickup_time": to_utc_z(self.pickup_time),
            "dropoff_time": to_utc_z(self.dropoff_time),
            "pickup_address": self.pickup_address,
            "pickup_lat": self.pickup_lat,
            "pickup_lng": self.pickup_lng,
            "dropoff_address": self.dropoff_address,
            "dropoff_lat": self.dropoff_lat,
            "dropoff_lng": self.dropoff_lng,
            "distance_meters": self.distance_meters,
            "duration_seconds": self.duration_seconds,
            "driver_id": self.driver_id,
            "assigned_at": to_utc_z(self.assigned_at),
            "created_at": to_utc_z(self.created_at),
        }


class DriverLocation(db.Model):
    """Latest reported GPS position per driver."""
    __tablename__ = "driver_locations"

    driver_id = db.Column(db.String(64), primary_key=True)
    lat = db.Column(db.Float, nullable=False)
    lng = db.Column(db.Float, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "driver_id": self.driver_id,
            "lat": self.lat,
            "lng": self.lng,
            "updated_at": to_utc_z(self.updated_at),
        }

# Overview: Best-effort customer notifications for order status changes.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Customer, Notification, Order

CHANNEL_SMS = "sms"
CHANNEL_EMAIL = "email"

STATUS_SENT = "SENT"
STATUS_FAILED = "FAILED"


def _log_sender(channel: str):
    def _send(recipient: str, message: str) -> None:
        current_app.logger.info("[%s] to %s: %s", channel, recipient, message)
    return _send


def _senders() -> dict:
    configured = current_app.config.get("NOTIFICATION_SENDERS") or {}
    return {
        CHANNEL_SMS: configured.get(CHANNEL_SMS) or _log_sender(CHANNEL_SMS),
        CHANNEL_EMAIL: configured.get(CHANNEL_EMAIL) or _log_sender(CHANNEL_EMAIL),
    }


def resolve_channels(order: Order) -> list[tuple[str, str]]:
    """
    Channels reachable for an order: its phone (SMS) and, when the order
    has a customer with an email on file, email.
    """
    channels = []
    if order.customer_phone:
        channels.append((CHANNEL_SMS, order.customer_phone))
    if order.customer_id is not None:
        customer = db.session.get(Customer, order.customer_id)
        if customer and customer.email:
            channels.append((CHANNEL_EMAIL, customer.email))
    return channels


def status_message(order: Order) -> str:
    return f"Order {order.order_number} is now {order.status.replace('_', ' ')}."


def notify_status_change(order: Order) -> list[Notification]:
    """
    Send the status message on every resolvable channel and record one
    Notification row per channel attempted.

    Never raises: the status change is already committed.
    """
    try:
        senders = _senders()
        message = status_message(order)
        records = []
        for channel, recipient in resolve_channels(order):
            record = Notification(
                order_id=order.id,
                channel=channel,
                recipient=recipient,
                order_status=order.status,
                status=STATUS_SENT,
            )
            try:
                senders[channel](recipient, message)
            except Exception as exc:
                current_app.logger.warning(
                    "Notification via %s failed for order %s: %s", channel, order.order_number, exc
                )
                record.status = STATUS_FAILED
                record.error = str(exc)[:255]
            db.session.add(record)
            records.append(record)

        db.session.commit()
        return records
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record notifications for order %s", order.id)
        return []

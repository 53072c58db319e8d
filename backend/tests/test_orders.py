# Overview: Pytest coverage for order creation, balance/loyalty side effects and status transitions.

"""
Order Ledger Tests

Covers:
- Pay-later balance accrual (and idempotency of the balance effect)
- Loyalty earn/redeem with history rows
- Validation before any write (bad totals, over-redemption)
- Per-branch order numbering
- Forward-only status transitions, forced transitions, notifications
"""

import logging

import pytest

from laundry.errors import InvariantViolation, NotFoundError, ValidationError
from laundry.models import Customer, LoyaltyHistory, Notification, Order
from laundry.services import customer_service, order_service


def _pay_later(order_payload, customer, total="25.00"):
    return order_payload(
        customer_id=customer.id,
        payment_method="pay_later",
        items=[{"clothing_item": "Suit", "service": "dry clean", "quantity": 1, "unit_price": total}],
        subtotal=total,
        tax="0.00",
        total=total,
    )


class TestOrderCreation:
    def test_pay_later_accrues_balance(self, db_session, branch, customer, order_payload):
        order = order_service.create_order(
            _pay_later(order_payload, customer), branch_id=branch.id, seller_name="maria",
        )

        customer = db_session.get(Customer, customer.id)
        assert customer.balance_due_cents == 2500
        assert customer.total_spent_cents == 2500
        assert order.balance_applied_at is not None

    def test_cash_order_leaves_balance_untouched(self, db_session, branch, customer, order_payload):
        order_service.create_order(
            order_payload(customer_id=customer.id), branch_id=branch.id, seller_name="maria",
        )

        customer = db_session.get(Customer, customer.id)
        assert customer.balance_due_cents == 0
        assert customer.total_spent_cents == 2170

    def test_pay_later_balance_applied_once(self, db_session, branch, customer, order_payload):
        order = order_service.create_order(
            _pay_later(order_payload, customer), branch_id=branch.id, seller_name="maria",
        )

        assert order_service.apply_pay_later_balance(order) is False
        db_session.commit()

        assert db_session.get(Customer, customer.id).balance_due_cents == 2500

    def test_pay_later_without_customer_creates_account(self, db_session, branch, order_payload):
        payload = order_payload(payment_method="pay_later", customer_phone="555-0199", customer_name="Walk In")

        order = order_service.create_order(payload, branch_id=branch.id, seller_name="maria")

        created = db_session.query(Customer).filter_by(phone="555-0199").one()
        assert order.customer_id == created.id
        assert created.balance_due_cents == 2170

    def test_pay_later_by_phone_rejects_deactivated_customer(self, db_session, branch, customer, order_payload):
        customer_service.deactivate_customer(customer.id)

        with pytest.raises(ValidationError):
            order_service.create_order(
                order_payload(payment_method="pay_later"), branch_id=branch.id, seller_name="maria",
            )

        customer = db_session.get(Customer, customer.id)
        assert customer.balance_due_cents == 0
        assert customer.total_spent_cents == 0
        assert db_session.query(Order).count() == 0

    def test_loyalty_earn_and_redeem(self, db_session, branch, customer, order_payload):
        order = order_service.create_order(
            order_payload(customer_id=customer.id, loyalty_points_redeemed=4, loyalty_points_earned=2),
            branch_id=branch.id,
            seller_name="maria",
        )

        assert db_session.get(Customer, customer.id).loyalty_points == 8
        history = (
            db_session.query(LoyaltyHistory)
            .filter_by(order_id=order.id)
            .order_by(LoyaltyHistory.id)
            .all()
        )
        assert [h.change for h in history] == [-4, 2]
        assert history[0].description == f"Redeemed on order {order.id} ({order.order_number})"

    def test_redemption_does_not_reduce_pay_later_accrual(self, db_session, branch, customer, order_payload):
        order_service.create_order(
            dict(_pay_later(order_payload, customer), loyalty_points_redeemed=5),
            branch_id=branch.id,
            seller_name="maria",
        )

        customer = db_session.get(Customer, customer.id)
        assert customer.balance_due_cents == 2500
        assert customer.loyalty_points == 5

    def test_over_redemption_rejected_before_write(self, db_session, branch, customer, order_payload):
        with pytest.raises(InvariantViolation):
            order_service.create_order(
                order_payload(customer_id=customer.id, payment_method="pay_later", loyalty_points_redeemed=11),
                branch_id=branch.id,
                seller_name="maria",
            )

        assert db_session.query(Order).count() == 0
        customer = db_session.get(Customer, customer.id)
        assert customer.loyalty_points == 10
        assert customer.balance_due_cents == 0

    def test_total_must_equal_subtotal_plus_tax(self, db_session, branch, order_payload):
        with pytest.raises(ValidationError):
            order_service.create_order(order_payload(total="21.71"), branch_id=branch.id, seller_name="maria")

        assert db_session.query(Order).count() == 0

    def test_subtotal_must_match_items(self, db_session, branch, order_payload):
        with pytest.raises(ValidationError):
            order_service.create_order(
                order_payload(subtotal="19.00", tax="1.70", total="20.70"),
                branch_id=branch.id,
                seller_name="maria",
            )

    def test_float_amounts_rejected(self, db_session, branch, order_payload):
        with pytest.raises(ValidationError):
            order_service.create_order(order_payload(total=21.7), branch_id=branch.id, seller_name="maria")

    def test_unknown_customer_is_not_found(self, db_session, branch, order_payload):
        with pytest.raises(NotFoundError):
            order_service.create_order(order_payload(customer_id=999), branch_id=branch.id, seller_name="maria")

    def test_loyalty_without_customer_rejected(self, db_session, branch, order_payload):
        with pytest.raises(ValidationError):
            order_service.create_order(
                order_payload(loyalty_points_earned=3), branch_id=branch.id, seller_name="maria",
            )

    def test_order_numbers_are_per_branch(self, db_session, branch, other_branch, order_payload):
        free = dict(subtotal="20.00", tax="0.00", total="20.00")
        first = order_service.create_order(order_payload(), branch_id=branch.id, seller_name="maria")
        second = order_service.create_order(order_payload(), branch_id=branch.id, seller_name="maria")
        uptown = order_service.create_order(order_payload(**free), branch_id=other_branch.id, seller_name="luis")

        assert first.order_number == "DT-0001"
        assert second.order_number == "DT-0002"
        assert uptown.order_number == "UP-0001"


class TestStatusTransitions:
    @pytest.fixture
    def order(self, db_session, branch, order_payload):
        return order_service.create_order(order_payload(), branch_id=branch.id, seller_name="maria")

    def test_full_forward_flow(self, db_session, branch, order):
        for status in ["processing", "washing", "drying", "ready", "completed"]:
            order = order_service.update_status(order.id, status, branch_id=branch.id)
            assert order.status == status

        assert order.actual_pickup is not None

    def test_skip_is_rejected_and_status_unchanged(self, db_session, branch, order):
        with pytest.raises(InvariantViolation) as exc_info:
            order_service.update_status(order.id, "drying", branch_id=branch.id)

        assert exc_info.value.details == {"current_status": "received", "allowed_next": "processing"}
        assert db_session.get(Order, order.id).status == "received"

    def test_advance_rejects_skip(self, db_session, order):
        with pytest.raises(InvariantViolation):
            order_service.advance(order, "drying")
        db_session.rollback()

        assert db_session.get(Order, order.id).status == "received"

    def test_backward_move_rejected(self, db_session, branch, order):
        order_service.update_status(order.id, "processing", branch_id=branch.id)

        with pytest.raises(InvariantViolation):
            order_service.update_status(order.id, "received", branch_id=branch.id)

    def test_completed_is_terminal(self, db_session, branch, order):
        for status in ["processing", "washing", "drying", "ready", "completed"]:
            order_service.update_status(order.id, status, branch_id=branch.id)

        with pytest.raises(InvariantViolation):
            order_service.update_status(order.id, "completed", branch_id=branch.id)

    def test_unknown_status_is_validation_error(self, db_session, branch, order):
        with pytest.raises(ValidationError):
            order_service.update_status(order.id, "folded", branch_id=branch.id)

    def test_other_branch_cannot_see_order(self, db_session, other_branch, order):
        with pytest.raises(NotFoundError):
            order_service.update_status(order.id, "processing", branch_id=other_branch.id)

    def test_force_transition_logged(self, db_session, branch, order, caplog):
        with caplog.at_level(logging.WARNING):
            forced = order_service.force_transition(
                order.id, "ready", branch_id=branch.id, actor="boss", reason="Counted twice",
            )

        assert forced.status == "ready"
        assert "Forced status transition" in caplog.text

    def test_force_transition_requires_reason(self, db_session, branch, order):
        with pytest.raises(ValidationError):
            order_service.force_transition(order.id, "ready", branch_id=branch.id, actor="boss", reason=" ")


class TestNotifications:
    def test_notifies_each_channel_and_records_failures(self, app, db_session, branch, customer, order_payload):
        sent = []

        def sms(recipient, message):
            sent.append((recipient, message))

        def broken_email(recipient, message):
            raise RuntimeError("SMTP down")

        app.config['NOTIFICATION_SENDERS'] = {"sms": sms, "email": broken_email}
        order = order_service.create_order(
            order_payload(customer_id=customer.id), branch_id=branch.id, seller_name="maria",
        )

        order = order_service.update_status(order.id, "processing", branch_id=branch.id, notify=True)

        assert order.status == "processing"
        assert sent == [("555-0101", f"Order {order.order_number} is now processing.")]
        records = {n.channel: n for n in db_session.query(Notification).filter_by(order_id=order.id)}
        assert records["sms"].status == "SENT"
        assert records["email"].status == "FAILED"
        assert records["email"].error == "SMTP down"

    def test_no_notification_without_flag(self, app, db_session, branch, order_payload):
        order = order_service.create_order(order_payload(), branch_id=branch.id, seller_name="maria")

        order_service.update_status(order.id, "processing", branch_id=branch.id)

        assert db_session.query(Notification).count() == 0


class TestOrderRoutes:
    def test_create_and_fetch(self, client, headers, order_payload):
        response = client.post('/api/orders', headers=headers, json=order_payload())

        assert response.status_code == 201
        order = response.json["order"]
        assert order["order_number"] == "DT-0001"
        assert order["total"] == "21.70"
        assert order["seller_name"] == "maria"

        response = client.get(f'/api/orders/{order["id"]}', headers=headers)
        assert response.status_code == 200

    def test_other_branch_gets_404(self, client, headers, other_headers, order_payload):
        order_id = client.post('/api/orders', headers=headers, json=order_payload()).json["order"]["id"]

        response = client.get(f'/api/orders/{order_id}', headers=other_headers)

        assert response.status_code == 404

    def test_over_redemption_is_409(self, client, headers, customer, order_payload):
        response = client.post('/api/orders', headers=headers, json=order_payload(
            customer_id=customer.id, loyalty_points_redeemed=50,
        ))

        assert response.status_code == 409
        assert response.json["code"] == "invariant_violation"

    def test_status_skip_is_409(self, client, headers, order_payload):
        order_id = client.post('/api/orders', headers=headers, json=order_payload()).json["order"]["id"]

        response = client.patch(f'/api/orders/{order_id}/status', headers=headers, json={"status": "ready"})

        assert response.status_code == 409
        assert response.json["details"]["allowed_next"] == "processing"

    def test_force_status_requires_admin(self, client, headers, admin_headers, order_payload):
        order_id = client.post('/api/orders', headers=headers, json=order_payload()).json["order"]["id"]
        body = {"status": "ready", "reason": "Repair"}

        assert client.post(f'/api/orders/{order_id}/force-status', headers=headers, json=body).status_code == 403

        response = client.post(f'/api/orders/{order_id}/force-status', headers=admin_headers, json=body)
        assert response.status_code == 200
        assert response.json["order"]["status"] == "ready"

    def test_list_filters_by_status(self, client, headers, order_payload):
        client.post('/api/orders', headers=headers, json=order_payload())

        assert len(client.get('/api/orders?status=received', headers=headers).json["orders"]) == 1
        assert client.get('/api/orders?status=ready', headers=headers).json["orders"] == []

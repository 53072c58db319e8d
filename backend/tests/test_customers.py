# Overview: Pytest coverage for customer profiles, financial-field protection and loyalty primitives.

import pytest

from laundry.errors import InvariantViolation, NotFoundError, ValidationError
from laundry.models import Customer, LoyaltyHistory
from laundry.services import customer_service


class TestFinancialPrimitives:
    def test_adjust_balance_is_relative(self, db_session, customer):
        customer_service.adjust_balance(customer.id, 1250)
        customer_service.adjust_balance(customer.id, -2000)
        db_session.commit()

        assert db_session.get(Customer, customer.id).balance_due_cents == -750

    def test_adjust_balance_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.adjust_balance(999, 100)
        db_session.rollback()

    def test_adjust_loyalty_never_goes_negative(self, db_session, customer):
        with pytest.raises(InvariantViolation):
            customer_service.adjust_loyalty(customer.id, -11, "Redeem")
        db_session.rollback()

        assert db_session.get(Customer, customer.id).loyalty_points == 10
        assert db_session.query(LoyaltyHistory).count() == 0

    def test_adjust_loyalty_writes_history(self, db_session, customer):
        customer_service.adjust_loyalty(customer.id, -10, "Redeem all")
        db_session.commit()

        assert db_session.get(Customer, customer.id).loyalty_points == 0
        entry = db_session.query(LoyaltyHistory).one()
        assert entry.change == -10
        assert entry.description == "Redeem all"


class TestProfile:
    def test_create_rejects_financial_fields(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            customer_service.create_customer({"phone": "555-0303", "name": "Cy", "balance_due": "0.00"})

        assert exc_info.value.details == {"fields": ["balance_due"]}

    def test_duplicate_phone_is_conflict(self, client, headers, customer):
        response = client.post('/api/customers', headers=headers, json={"phone": "555-0101", "name": "Copy"})

        assert response.status_code == 409

    def test_create_defaults_to_operator_branch(self, client, headers, branch):
        response = client.post('/api/customers', headers=headers, json={"phone": "555-0404", "name": "Dee"})

        assert response.status_code == 201
        assert response.json["customer"]["branch_id"] == branch.id
        assert response.json["customer"]["balance_due"] == "0.00"

    @pytest.mark.parametrize("field, value", [
        ("balance_due", "0.00"),
        ("loyalty_points", 500),
        ("total_spent", "1.00"),
        ("balance_due_cents", 0),
    ])
    def test_patch_rejects_financial_fields(self, client, headers, customer, field, value):
        response = client.patch(f'/api/customers/{customer.id}', headers=headers, json={field: value})

        assert response.status_code == 400
        assert "Financial fields cannot be set directly" in response.json["error"]

    def test_patch_profile_fields(self, client, headers, customer):
        response = client.patch(f'/api/customers/{customer.id}', headers=headers, json={
            "name": "Ana L.",
            "nickname": "ana",
            "email": "",
        })

        assert response.status_code == 200
        body = response.json["customer"]
        assert body["name"] == "Ana L."
        assert body["nickname"] == "ana"
        assert body["email"] is None

    def test_delete_deactivates(self, client, headers, customer, db_session):
        response = client.delete(f'/api/customers/{customer.id}', headers=headers)

        assert response.status_code == 200
        assert response.json["customer"]["is_active"] is False
        assert db_session.get(Customer, customer.id) is not None

    def test_inactive_customer_cannot_order(self, client, headers, customer, order_payload):
        client.delete(f'/api/customers/{customer.id}', headers=headers)

        response = client.post('/api/orders', headers=headers, json=order_payload(customer_id=customer.id))

        assert response.status_code == 400


class TestHistoryRoutes:
    def test_orders_show_paid_and_remaining(self, client, headers, customer, order_payload):
        order = client.post('/api/orders', headers=headers, json=order_payload(
            customer_id=customer.id, payment_method="pay_later",
        )).json["order"]
        client.post('/api/payments', headers=headers, json={
            "customer_id": customer.id, "order_id": order["id"], "amount": "5.00", "payment_method": "cash",
        })

        response = client.get(f'/api/customers/{customer.id}/orders', headers=headers)

        assert response.status_code == 200
        [row] = response.json["orders"]
        assert row["paid"] == "5.00"
        assert row["remaining"] == "16.70"

    def test_loyalty_history(self, client, headers, customer, order_payload):
        client.post('/api/orders', headers=headers, json=order_payload(
            customer_id=customer.id, loyalty_points_earned=3,
        ))

        response = client.get(f'/api/customers/{customer.id}/loyalty-history', headers=headers)

        assert response.status_code == 200
        assert response.json["total"] == 1
        assert response.json["data"][0]["change"] == 3

    def test_unknown_customer_is_404(self, client, headers):
        response = client.get('/api/customers/999', headers=headers)

        assert response.status_code == 404

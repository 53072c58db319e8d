# Overview: Pytest coverage for public delivery intake, dispatch and driver tracking.

import pytest

from laundry.errors import InvariantViolation, NotFoundError
from laundry.models import DeliveryOrder, Order
from laundry.services import delivery_service, order_service


def _intake(**overrides) -> dict:
    payload = {
        "branch_code": "DT",
        "customer_name": "Ana Lopez",
        "customer_phone": "555-0101",
        "address": "7 Elm St",
        "items": [{"clothing_item": "Shirt", "service": "wash"}, {"clothing_item": "Duvet"}],
        "pickup_time": "2026-01-05T10:00:00Z",
    }
    payload.update(overrides)
    return payload


class TestPublicIntake:
    def test_returns_only_identifiers(self, client, branch):
        response = client.post('/delivery/orders', json=_intake())

        assert response.status_code == 201
        assert set(response.json) == {"order_id", "order_number"}
        assert response.json["order_number"] == "DT-0001"

    def test_creates_pending_order_with_placeholder_items(self, db_session, branch):
        result = delivery_service.submit_delivery_order(_intake())

        order = db_session.get(Order, result["order_id"])
        assert order.status == "delivery_pending"
        assert order.payment_method == "cash"
        assert order.seller_name == "online"
        assert order.total_cents == 0
        assert [item["quantity"] for item in order.items] == [1, 1]

        delivery = db_session.query(DeliveryOrder).filter_by(order_id=order.id).one()
        assert delivery.pickup_address == "12 Main St"
        assert delivery.dropoff_address == "7 Elm St"
        assert delivery.distance_meters is None

    def test_distance_estimated_when_coordinates_known(self, db_session, branch):
        branch.lat, branch.lng = 40.7128, -74.0060
        db_session.commit()

        result = delivery_service.submit_delivery_order(_intake(dropoff_lat=40.7306, dropoff_lng=-73.9352))

        delivery = db_session.query(DeliveryOrder).filter_by(order_id=result["order_id"]).one()
        assert 5000 < delivery.distance_meters < 7000
        assert delivery.duration_seconds > 0

    def test_unknown_branch_is_generic_404(self, client, branch):
        response = client.post('/delivery/orders', json=_intake(branch_code="NOPE"))

        assert response.status_code == 404
        assert response.json["error"] == "Branch not found"

    def test_inactive_branch_is_not_found(self, db_session, branch):
        branch.is_active = False
        db_session.commit()

        with pytest.raises(NotFoundError):
            delivery_service.submit_delivery_order(_intake())

    def test_missing_address_is_400(self, client, branch):
        response = client.post('/delivery/orders', json=_intake(address=""))

        assert response.status_code == 400

    @pytest.mark.parametrize("item", [
        {"clothing_item": "Shirt", "price": "1e30"},
        {"clothing_item": "Shirt", "quantity": 10**30},
    ])
    def test_oversized_item_is_400(self, client, branch, item):
        response = client.post('/delivery/orders', json=_intake(items=[item]))

        assert response.status_code == 400
        assert response.json["code"] == "validation_error"


class TestDispatch:
    @pytest.fixture
    def pending(self, db_session, branch):
        return delivery_service.submit_delivery_order(_intake())["order_id"]

    def test_assign_moves_order_to_received(self, db_session, branch, pending):
        delivery = delivery_service.assign_driver(pending, "driver-7", branch_id=branch.id)

        assert delivery.driver_id == "driver-7"
        assert delivery.assigned_at is not None
        assert db_session.get(Order, pending).status == "received"

    def test_reassign_keeps_status(self, db_session, branch, pending):
        delivery_service.assign_driver(pending, "driver-7", branch_id=branch.id)
        delivery_service.assign_driver(pending, "driver-8", branch_id=branch.id)

        assert db_session.get(Order, pending).status == "received"

    def test_other_branch_cannot_assign(self, db_session, other_branch, pending):
        with pytest.raises(NotFoundError):
            delivery_service.assign_driver(pending, "driver-7", branch_id=other_branch.id)

    def test_finalize_reprices_with_branch_tax(self, db_session, branch, pending):
        order = delivery_service.finalize_delivery_pricing(
            pending,
            [{"clothing_item": "Shirt", "service": "wash", "quantity": 2, "unit_price": "10.00"}],
            branch_id=branch.id,
        )

        assert order.subtotal_cents == 2000
        assert order.tax_cents == 170
        assert order.total_cents == 2170

    def test_finalize_after_processing_rejected(self, db_session, branch, pending):
        delivery_service.assign_driver(pending, "driver-7", branch_id=branch.id)
        order_service.update_status(pending, "processing", branch_id=branch.id)

        with pytest.raises(InvariantViolation):
            delivery_service.finalize_delivery_pricing(
                pending,
                [{"clothing_item": "Shirt", "quantity": 1, "unit_price": "10.00"}],
                branch_id=branch.id,
            )

    def test_routes(self, client, headers, pending):
        response = client.post('/api/delivery/assign', headers=headers, json={
            "order_id": pending, "driver_id": "driver-7",
        })
        assert response.status_code == 200

        response = client.get('/api/delivery/orders?driver_id=driver-7', headers=headers)
        assert response.status_code == 200
        [row] = response.json["deliveries"]
        assert row["order"]["status"] == "received"

        response = client.post('/api/delivery/finalize', headers=headers, json={
            "order_id": pending,
            "items": [{"clothing_item": "Shirt", "quantity": 1, "unit_price": "4.00"}],
        })
        assert response.status_code == 200
        assert response.json["order"]["total"] == "4.34"


class TestDriverTracking:
    def test_location_upsert(self, client, headers):
        client.post('/api/delivery/driver-location', headers=headers, json={
            "driver_id": "driver-7", "lat": 40.0, "lng": -74.0,
        })
        client.post('/api/delivery/driver-location', headers=headers, json={
            "driver_id": "driver-7", "lat": 40.5, "lng": -74.5,
        })

        response = client.get('/api/delivery/driver-locations', headers=headers)

        assert response.status_code == 200
        [location] = response.json["locations"]
        assert location["lat"] == 40.5

    def test_out_of_range_coordinates(self, client, headers):
        response = client.post('/api/delivery/driver-location', headers=headers, json={
            "driver_id": "driver-7", "lat": 95, "lng": 0,
        })

        assert response.status_code == 400

"""Integration tests for Order list, retrieve and timeline endpoints.

Covers:
- List: paginated, newest first, lightweight payload.
- Filters: status (multiple), fulfillment mode, order number, total range.
- Retrieve: detail with dashboard actions and transition timeline.
- Timeline endpoint: oldest first.
- 404 on non-existent or malformed IDs.
- Authentication and dashboard permission enforcement.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.constants import FulfillmentMode, OrderStatus
from modules.orders.services import build_order_status_service

pytestmark = pytest.mark.integration

LIST_URL = "/api/v1/orders/"


def _detail_url(order_id) -> str:
    return f"/api/v1/orders/{order_id}/"


# ===========================================================================
# List
# ===========================================================================


class TestListOrders:
    def test_list_is_paginated(self, cook_client, make_order):
        for _ in range(3):
            make_order()

        response = cook_client.get(LIST_URL, {"page_size": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert len(data["results"]) == 2
        assert data["next"] is not None
        assert data["previous"] is None

    def test_list_newest_first(self, cook_client, make_order):
        older = make_order()
        newer = make_order()

        response = cook_client.get(LIST_URL)

        ids = [item["id"] for item in response.json()["results"]]
        assert ids == [str(newer.id), str(older.id)]

    def test_list_payload(self, cook_client, make_order):
        order = make_order(status=OrderStatus.READY, fulfillment_mode=FulfillmentMode.PICKUP)

        [item] = cook_client.get(LIST_URL).json()["results"]

        assert item["order_number"] == order.order_number
        assert item["status"] == "ready"
        assert item["fulfillment_mode"] == "pickup"
        assert item["next_valid_status"] == "ready_for_pickup"
        assert "transitions" not in item

    def test_filter_by_multiple_statuses(self, cook_client, make_order):
        paid = make_order(status=OrderStatus.PAID)
        confirmed = make_order(status=OrderStatus.CONFIRMED)
        make_order(status=OrderStatus.READY)

        response = cook_client.get(f"{LIST_URL}?status=paid&status=confirmed")

        ids = {item["id"] for item in response.json()["results"]}
        assert ids == {str(paid.id), str(confirmed.id)}

    def test_filter_by_fulfillment_mode(self, cook_client, make_order):
        pickup = make_order(fulfillment_mode=FulfillmentMode.PICKUP)
        make_order(fulfillment_mode=FulfillmentMode.DELIVERY)

        response = cook_client.get(LIST_URL, {"fulfillment_mode": "pickup"})

        assert [item["id"] for item in response.json()["results"]] == [str(pickup.id)]

    def test_filter_by_order_number(self, cook_client, make_order):
        target = make_order()
        make_order()

        response = cook_client.get(LIST_URL, {"order_number": target.order_number[-6:]})

        assert [item["id"] for item in response.json()["results"]] == [str(target.id)]

    def test_filter_by_total_range(self, cook_client, make_order):
        make_order(grand_total=Decimal("1000.00"))
        mid = make_order(grand_total=Decimal("5000.00"))
        make_order(grand_total=Decimal("9000.00"))

        response = cook_client.get(LIST_URL, {"min_total": "2000", "max_total": "6000"})

        assert [item["id"] for item in response.json()["results"]] == [str(mid.id)]

    def test_invalid_status_filter(self, cook_client):
        response = cook_client.get(LIST_URL, {"status": "shipped"})
        assert response.status_code == 400


# ===========================================================================
# Retrieve / timeline
# ===========================================================================


class TestRetrieveOrder:
    def test_retrieve(self, cook_client, make_order):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = cook_client.get(_detail_url(order.id))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(order.id)
        assert data["status"] == "confirmed"
        assert data["next_valid_status"] == "preparing"
        assert data["available_statuses"] == ["preparing", "cancelled"]
        assert data["transitions"] == []

    def test_manager_sees_override_actions(self, manager_client, make_order):
        order = make_order(status=OrderStatus.READY)

        data = manager_client.get(_detail_url(order.id)).json()

        assert data["available_statuses"] == ["out_for_delivery", "cancelled"]

    def test_retrieve_includes_timeline(self, cook_client, make_order, cook):
        order = make_order(status=OrderStatus.PAID)
        service = build_order_status_service()
        service.update_status(order.id, OrderStatus.CONFIRMED, cook)
        service.update_status(order.id, OrderStatus.PREPARING, cook)

        data = cook_client.get(_detail_url(order.id)).json()

        assert [t["to_status"] for t in data["transitions"]] == ["confirmed", "preparing"]
        assert data["status"] == data["transitions"][-1]["to_status"]

    def test_retrieve_not_found(self, cook_client):
        response = cook_client.get(_detail_url(uuid4()))
        assert response.status_code == 404
        assert response.json() == {"detail": "Order not found."}

    def test_retrieve_malformed_id(self, cook_client):
        response = cook_client.get(_detail_url("not-a-uuid"))
        assert response.status_code == 404


class TestTransitionsEndpoint:
    def test_timeline_oldest_first(self, cook_client, make_order, cook, manager):
        order = make_order(status=OrderStatus.DELIVERED)
        build_order_status_service().update_status(
            order.id,
            OrderStatus.OUT_FOR_DELIVERY,
            manager,
            override=True,
            override_reason="Rider came back with the food",
        )
        build_order_status_service().update_status(order.id, OrderStatus.DELIVERED, cook)

        response = cook_client.get(f"{_detail_url(order.id)}transitions/")

        assert response.status_code == 200
        first, second = response.json()
        assert first["from_status"] == "delivered"
        assert first["to_status"] == "out_for_delivery"
        assert first["is_override"] is True
        assert first["override_reason"] == "Rider came back with the food"
        assert first["actor_id"] == manager.pk
        assert second["to_status"] == "delivered"
        assert second["is_override"] is False
        assert second["timestamp"] >= first["timestamp"]

    def test_timeline_not_found(self, cook_client):
        response = cook_client.get(f"{_detail_url(uuid4())}transitions/")
        assert response.status_code == 404


# ===========================================================================
# Access control
# ===========================================================================


class TestAccessControl:
    def test_unauthenticated(self, api_client):
        response = api_client.get(LIST_URL)
        assert response.status_code == 401

    def test_client_cannot_use_dashboard(self, customer_client, make_order):
        order = make_order()
        assert customer_client.get(LIST_URL).status_code == 403
        assert customer_client.get(_detail_url(order.id)).status_code == 403

    def test_staff_can_use_dashboard(self, api_client, django_user_model):
        staff = django_user_model.objects.create_user(
            username="staff", password="testpass123", is_staff=True
        )
        api_client.force_authenticate(user=staff)
        assert api_client.get(LIST_URL).status_code == 200

"""Integration tests for the status update and client cancel endpoints.

Covers:
- PATCH /api/v1/orders/{id}/status/:
  - Forward step returns the refreshed order and timeline.
  - Invalid, cross-path and no-op transitions return 400 with context.
  - Terminal orders return 400 with no next status.
  - Overrides: 403 without permission, 400 without reason, 200 otherwise.
  - Non-existent order returns 404; bad payload returns 400.
- POST /api/v1/orders/{id}/cancel/ (client):
  - Own order within the window is cancelled (and refunded after commit).
  - Window expired, wrong status, someone else's order, bad ID.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders.constants import FulfillmentMode, OrderStatus
from modules.orders.models import OrderStatusTransition

pytestmark = pytest.mark.integration


def _status_url(order_id) -> str:
    return f"/api/v1/orders/{order_id}/status/"


def _cancel_url(order_id) -> str:
    return f"/api/v1/orders/{order_id}/cancel/"


# ===========================================================================
# PATCH status
# ===========================================================================


class TestUpdateStatus:
    def test_forward_step(self, cook_client, make_order, cook):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = cook_client.patch(
            _status_url(order.id), {"status": "preparing"}, format="json"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "preparing"
        assert data["next_valid_status"] == "ready"
        [transition] = data["transitions"]
        assert transition["from_status"] == "confirmed"
        assert transition["to_status"] == "preparing"
        assert transition["actor_id"] == cook.pk

    def test_skip_ahead_rejected(self, cook_client, make_order):
        order = make_order(status=OrderStatus.PAID)

        response = cook_client.patch(
            _status_url(order.id), {"status": "ready"}, format="json"
        )

        assert response.status_code == 400
        data = response.json()
        assert data["current_status"] == "paid"
        assert data["attempted_status"] == "ready"
        assert data["next_valid_status"] == "confirmed"
        assert "detail" in data
        order.refresh_from_db()
        assert order.status == OrderStatus.PAID

    def test_cross_path_rejected(self, cook_client, make_order):
        order = make_order(status=OrderStatus.READY, fulfillment_mode=FulfillmentMode.PICKUP)

        response = cook_client.patch(
            _status_url(order.id), {"status": "out_for_delivery"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["next_valid_status"] == "ready_for_pickup"

    def test_no_op_rejected(self, cook_client, make_order):
        order = make_order(status=OrderStatus.PREPARING)

        response = cook_client.patch(
            _status_url(order.id), {"status": "preparing"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Order is already preparing."

    def test_terminal_rejected(self, cook_client, make_order):
        order = make_order(status=OrderStatus.PICKED_UP, fulfillment_mode=FulfillmentMode.PICKUP)

        response = cook_client.patch(
            _status_url(order.id), {"status": "refunded"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["next_valid_status"] is None

    def test_cook_cancels_confirmed_order(self, cook_client, make_order):
        order = make_order(status=OrderStatus.CONFIRMED)

        response = cook_client.patch(
            _status_url(order.id), {"status": "cancelled"}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["cancelled_at"] is not None

    def test_cook_cannot_cancel_while_preparing(self, cook_client, make_order):
        order = make_order(status=OrderStatus.PREPARING)

        response = cook_client.patch(
            _status_url(order.id), {"status": "cancelled"}, format="json"
        )

        assert response.status_code == 400

    def test_unknown_status_payload(self, cook_client, make_order):
        order = make_order()
        response = cook_client.patch(
            _status_url(order.id), {"status": "shipped"}, format="json"
        )
        assert response.status_code == 400
        assert "status" in response.json()

    def test_missing_status_payload(self, cook_client, make_order):
        order = make_order()
        response = cook_client.patch(_status_url(order.id), {}, format="json")
        assert response.status_code == 400

    def test_not_found(self, cook_client):
        response = cook_client.patch(
            _status_url(uuid4()), {"status": "paid"}, format="json"
        )
        assert response.status_code == 404

    def test_client_forbidden(self, customer_client, make_order):
        order = make_order()
        response = customer_client.patch(
            _status_url(order.id), {"status": "paid"}, format="json"
        )
        assert response.status_code == 403

    def test_unauthenticated(self, api_client, make_order):
        order = make_order()
        response = api_client.patch(
            _status_url(order.id), {"status": "paid"}, format="json"
        )
        assert response.status_code == 401


class TestOverride:
    def test_manager_override(self, manager_client, make_order, manager):
        order = make_order(status=OrderStatus.DELIVERED)

        response = manager_client.patch(
            _status_url(order.id),
            {
                "status": "confirmed",
                "override": True,
                "override_reason": "Customer received someone else's order",
            },
            format="json",
        )

        assert response.status_code == 200
        [transition] = response.json()["transitions"]
        assert transition["is_override"] is True
        assert transition["override_reason"] == "Customer received someone else's order"
        assert transition["actor_id"] == manager.pk

    def test_override_without_reason(self, manager_client, make_order):
        order = make_order(status=OrderStatus.DELIVERED)

        response = manager_client.patch(
            _status_url(order.id),
            {"status": "confirmed", "override": True, "override_reason": "  "},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["current_status"] == "delivered"
        assert not OrderStatusTransition.objects.filter(order=order).exists()

    def test_cook_override_forbidden(self, cook_client, make_order):
        order = make_order(status=OrderStatus.DELIVERED)

        response = cook_client.patch(
            _status_url(order.id),
            {"status": "confirmed", "override": True, "override_reason": "Please"},
            format="json",
        )

        assert response.status_code == 403
        order.refresh_from_db()
        assert order.status == OrderStatus.DELIVERED


# ===========================================================================
# POST cancel (client)
# ===========================================================================


class TestClientCancel:
    def test_cancel_within_window(self, customer_client, make_order):
        order = make_order(status=OrderStatus.PAID, paid_minutes_ago=5)

        response = customer_client.post(_cancel_url(order.id))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(order.id)
        assert data["order_number"] == order.order_number
        assert data["status"] == "cancelled"
        assert "refund" in data["detail"]

    def test_cancel_triggers_refund_after_commit(
        self, customer_client, make_order, django_capture_on_commit_callbacks
    ):
        order = make_order(status=OrderStatus.CONFIRMED, paid_minutes_ago=5)

        with django_capture_on_commit_callbacks(execute=True):
            response = customer_client.post(_cancel_url(order.id))

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.status == OrderStatus.REFUNDED
        assert list(
            order.transitions.values_list("to_status", flat=True)
        ) == [OrderStatus.CANCELLED, OrderStatus.REFUNDED]

    def test_window_expired(self, customer_client, make_order):
        order = make_order(status=OrderStatus.PAID, paid_minutes_ago=45)

        response = customer_client.post(_cancel_url(order.id))

        assert response.status_code == 400
        assert "expired" in response.json()["detail"]
        order.refresh_from_db()
        assert order.status == OrderStatus.PAID

    def test_preparing_cannot_be_cancelled(self, customer_client, make_order):
        order = make_order(status=OrderStatus.PREPARING)

        response = customer_client.post(_cancel_url(order.id))

        assert response.status_code == 400
        assert response.json()["current_status"] == "preparing"

    def test_someone_elses_order(self, api_client, make_order, other_customer_user):
        order = make_order(status=OrderStatus.PAID)
        api_client.force_authenticate(user=other_customer_user)

        response = api_client.post(_cancel_url(order.id))

        assert response.status_code == 404

    def test_invalid_id(self, customer_client):
        response = customer_client.post(_cancel_url("not-a-uuid"))
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid order ID format."}

    def test_unauthenticated(self, api_client, make_order):
        order = make_order(status=OrderStatus.PAID)
        response = api_client.post(_cancel_url(order.id))
        assert response.status_code == 401

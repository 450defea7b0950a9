from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from modules.orders.constants import FulfillmentMode, OrderStatus
from modules.orders.models import Order

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def _user_with_perms(username: str, *codenames: str):
    user = User.objects.create_user(username=username, password="testpass123")
    if codenames:
        user.user_permissions.add(
            *Permission.objects.filter(
                content_type__app_label="orders", codename__in=codenames
            )
        )
    # Reload to drop the cached permission set.
    return User.objects.get(pk=user.pk)


@pytest.fixture()
def customer_user():
    """A platform client: may cancel their own orders, nothing else."""
    return User.objects.create_user(username="client", password="testpass123")


@pytest.fixture()
def other_customer_user():
    return User.objects.create_user(username="other-client", password="testpass123")


@pytest.fixture()
def cook():
    """Dashboard user allowed to move orders along their path."""
    return _user_with_perms("cook", "manage_orders")


@pytest.fixture()
def manager():
    """Dashboard user who may also override the transition rules."""
    return _user_with_perms("manager", "manage_orders", "override_order_status")


@pytest.fixture()
def cook_client(api_client, cook):
    api_client.force_authenticate(user=cook)
    return api_client


@pytest.fixture()
def manager_client(api_client, manager):
    api_client.force_authenticate(user=manager)
    return api_client


@pytest.fixture()
def customer_client(api_client, customer_user):
    api_client.force_authenticate(user=customer_user)
    return api_client


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_order(customer_user):
    """Factory creating persisted orders in any status.

    ``paid_minutes_ago`` sets ``paid_at`` relative to now; statuses at or
    past ``paid`` default to having been paid a minute ago.
    """

    def _make(
        status: str = OrderStatus.PENDING_PAYMENT,
        fulfillment_mode: str = FulfillmentMode.DELIVERY,
        client=None,
        paid_minutes_ago: int | None = None,
        **extra,
    ) -> Order:
        if paid_minutes_ago is None and status != OrderStatus.PENDING_PAYMENT:
            paid_minutes_ago = 1
        if paid_minutes_ago is not None:
            extra.setdefault(
                "paid_at", timezone.now() - timedelta(minutes=paid_minutes_ago)
            )
        extra.setdefault("grand_total", Decimal("7500.00"))
        return Order.objects.create(
            client=client or customer_user,
            fulfillment_mode=fulfillment_mode,
            status=status,
            **extra,
        )

    return _make

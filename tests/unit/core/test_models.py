"""Unit tests for BaseModel, exercised through the concrete Order model."""

from __future__ import annotations

import uuid

import pytest
from freezegun import freeze_time
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import OrderStatus
from modules.orders.models import Order

pytestmark = pytest.mark.unit


class TestBaseModel:
    def test_order_inherits_base_model(self):
        assert issubclass(Order, BaseModel)
        assert BaseModel._meta.abstract is True

    def test_id_is_uuid_version_7(self, make_order):
        order = make_order()
        assert isinstance(order.id, uuid.UUID)
        assert order.id.version == 7

    def test_ids_are_time_ordered(self, make_order):
        ids = [make_order().id for _ in range(5)]
        assert ids == sorted(ids)

    def test_id_is_not_editable(self):
        assert Order._meta.get_field("id").editable is False

    @freeze_time("2026-05-04 08:00:00")
    def test_timestamps_set_on_create(self, make_order):
        order = make_order()
        assert order.created_at == timezone.now()
        assert order.updated_at == timezone.now()

    def test_updated_at_changes_on_save(self, make_order):
        with freeze_time("2026-05-04 08:00:00"):
            order = make_order()
        with freeze_time("2026-05-04 08:05:00"):
            order.status = OrderStatus.PAID
            order.save()

        order.refresh_from_db()
        assert order.updated_at > order.created_at

    def test_save_with_update_fields_includes_updated_at(self, make_order):
        with freeze_time("2026-05-04 08:00:00"):
            order = make_order()
        with freeze_time("2026-05-04 09:00:00"):
            order.status = OrderStatus.PAID
            order.save(update_fields=["status"])
            expected = timezone.now()

        order.refresh_from_db()
        assert order.status == OrderStatus.PAID
        assert order.updated_at == expected

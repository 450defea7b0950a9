"""Django ORM implementation of the Order repository.

Concurrency control on status updates uses ``select_for_update()``: the
service reads the current status through ``get_for_update`` so that two
simultaneous transition attempts on the same order are serialized.

Domain events collected on the aggregate are handed to the event bus on
``save`` and published only once the surrounding transaction commits.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet

from modules.orders.models import Order, OrderStatusTransition
from modules.orders.repositories.interfaces import IOrderRepository
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with its client and transition log.

        Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return (
                Order.objects.select_related("client")
                .prefetch_related("transitions__actor")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic``.  Returns ``None`` for
        non-existent or malformed IDs.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        """Orders, newest first, optionally narrowed by ORM lookups.

        Supported filter keys include ``status``, ``fulfillment_mode``,
        ``client_id`` and ``id__in``.
        """
        queryset = Order.objects.select_related("client")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def list_transitions(self, order_id: str) -> List[OrderStatusTransition]:
        try:
            return list(
                OrderStatusTransition.objects.select_related("actor")
                .filter(order_id=order_id)
                .order_by("created_at", "id")
            )
        except (ValueError, ValidationError):
            return []

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and queue its domain events for after commit."""
        entity.save()

        events = entity.domain_events
        for event in events:
            event_bus.publish_on_commit(event)
        entity.clear_domain_events()

        logger.info(
            "order.saved",
            order_id=str(entity.id),
            status=entity.status,
            event_count=len(events),
        )
        return entity

    @transaction.atomic
    def add_transition(
        self,
        order: Order,
        from_status: str,
        to_status: str,
        actor: Any = None,
        is_override: bool = False,
        override_reason: str = "",
    ) -> OrderStatusTransition:
        """Record a status change in the order's audit trail."""
        record = OrderStatusTransition.objects.create(
            order=order,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            is_override=is_override,
            override_reason=override_reason if is_override else "",
        )
        logger.info(
            "order.transition_recorded",
            order_id=str(order.id),
            transition_id=str(record.id),
            from_status=from_status,
            to_status=to_status,
            is_override=is_override,
        )
        return record

"""Event handlers for Orders domain events.

``OrderStatusChangedHandler`` is the order activity log: one structured
entry per transition, raised to ``warning`` for administrative overrides
so they stand out in the audit stream.
"""

from __future__ import annotations

import structlog

from modules.orders.events import OrderCancelled, OrderRefunded, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        log = logger.bind(
            order_id=str(event.aggregate_id),
            from_status=event.from_status,
            to_status=event.to_status,
            actor_id=event.actor_id,
        )
        if event.is_override:
            log.warning(
                "order.activity.override",
                override_reason=event.override_reason,
            )
        else:
            log.info("order.activity.status_changed")


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    """Hands the refund off to Celery; the task itself skips unpaid orders."""

    def handle(self, event: OrderCancelled) -> None:
        from modules.orders.tasks import process_order_refund

        logger.info(
            "order.refund_dispatched",
            order_id=str(event.aggregate_id),
            from_status=event.from_status,
        )
        process_order_refund.delay(str(event.aggregate_id))


class OrderRefundedHandler(IEventHandler[OrderRefunded]):
    def handle(self, event: OrderRefunded) -> None:
        logger.info("order.activity.refunded", order_id=str(event.aggregate_id))


order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_refunded_handler = OrderRefundedHandler()

"""Asynchronous tasks for the orders module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.db import DatabaseError

logger = structlog.get_logger(__name__)


@shared_task(
    name="orders.process_order_refund",
    autoretry_for=(DatabaseError,),
    retry_backoff=10,
    max_retries=3,
)
def process_order_refund(order_id: str) -> dict:
    """Move a cancelled, paid order to ``refunded``.

    Idempotent: re-running for an already refunded order is a no-op.
    """
    from modules.orders.services import build_order_status_service

    log = logger.bind(order_id=order_id)
    log.info("order.refund_task.started")

    order = build_order_status_service().refund_order(order_id)
    if order is None:
        return {"order_id": order_id, "refunded": False}

    log.info("order.refund_task.finished", status=order.status)
    return {"order_id": order_id, "refunded": True, "status": order.status}

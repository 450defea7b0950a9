"""Order domain constants.

Status choices, fulfillment modes and the per-mode status paths that the
transition validator walks.  Each fulfillment mode maps to its complete
ordered path (common prefix + mode-specific suffix), so the table reads
top to bottom exactly as an order progresses.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING_PAYMENT = "pending_payment", "Pending payment"
    PAID = "paid", "Paid"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    DELIVERED = "delivered", "Delivered"
    READY_FOR_PICKUP = "ready_for_pickup", "Ready for pickup"
    PICKED_UP = "picked_up", "Picked up"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class FulfillmentMode(models.TextChoices):
    DELIVERY = "delivery", "Delivery"
    PICKUP = "pickup", "Pickup"


COMMON_PATH: Tuple[str, ...] = (
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAID,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
)

STATUS_PATHS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        FulfillmentMode.DELIVERY: COMMON_PATH
        + (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
        FulfillmentMode.PICKUP: COMMON_PATH
        + (OrderStatus.READY_FOR_PICKUP, OrderStatus.PICKED_UP),
    }
)

# Cook/manager side: before preparation starts.
CANCELLABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING_PAYMENT, OrderStatus.PAID, OrderStatus.CONFIRMED}
)

# Client side: money has moved, nothing has been cooked yet.
CLIENT_CANCELLABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.PAID, OrderStatus.CONFIRMED}
)

TERMINAL_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.DELIVERED,
        OrderStatus.PICKED_UP,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    }
)

# Status -> lifecycle timestamp field stamped when the status is entered.
STATUS_TIMESTAMP_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        OrderStatus.PAID: "paid_at",
        OrderStatus.CONFIRMED: "confirmed_at",
        OrderStatus.DELIVERED: "fulfilled_at",
        OrderStatus.PICKED_UP: "fulfilled_at",
        OrderStatus.CANCELLED: "cancelled_at",
        OrderStatus.REFUNDED: "refunded_at",
    }
)

ORDER_NUMBER_MAX_RETRIES = 5

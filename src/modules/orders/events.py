"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised for every accepted status transition."""

    from_status: str = ""
    to_status: str = ""
    actor_id: Optional[int] = None
    is_override: bool = False
    override_reason: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled without an override; starts the refund."""

    from_status: str = ""
    actor_id: Optional[int] = None


@dataclass(frozen=True)
class OrderRefunded(DomainEvent):
    """Raised when a cancelled order has been refunded."""

"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``UpdateStatusDTO``: input for a single status change.
- ``MassStatusUpdateDTO``: input for a batch status change.
- ``MassUpdateFailureDTO`` / ``MassStatusUpdateResultDTO``: batch outcome.
- ``TransitionDTO``: output for a transition log record.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.orders.constants import OrderStatus

if TYPE_CHECKING:
    from modules.orders.models import OrderStatusTransition


def _known_status(value: str) -> str:
    if value not in OrderStatus.values:
        raise ValueError(f"Unknown order status: {value!r}.")
    return value


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class UpdateStatusDTO(BaseModel):
    """Immutable DTO for a single status change request.

    Override reason validation is deliberately left to the transition
    validator so every entry point reports it the same way.
    """

    model_config = ConfigDict(frozen=True)

    status: str
    override: bool = False
    override_reason: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        return _known_status(v)


class MassStatusUpdateDTO(BaseModel):
    """Immutable DTO for batch status changes.

    Validates:
    - at least one order, at most ``ORDER_MASS_UPDATE_MAX_ORDERS``;
    - no duplicate IDs;
    - a known target status.
    """

    model_config = ConfigDict(frozen=True)

    order_ids: List[UUID]
    status: str

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        return _known_status(v)

    @field_validator("order_ids")
    @classmethod
    def order_ids_must_be_a_reasonable_batch(cls, v: List[UUID]) -> List[UUID]:
        if not v:
            raise ValueError("Select at least one order.")
        limit = settings.ORDER_MASS_UPDATE_MAX_ORDERS
        if len(v) > limit:
            raise ValueError(f"At most {limit} orders can be updated at once.")
        if len(v) != len(set(v)):
            raise ValueError("Duplicate order IDs are not allowed.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class MassUpdateFailureDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_number: Optional[str] = None
    current_status: Optional[str] = None
    next_valid_status: Optional[str] = None
    message: str


class MassStatusUpdateResultDTO(BaseModel):
    """Per-order outcome of a batch; failures never roll back successes."""

    model_config = ConfigDict(frozen=True)

    target_status: str
    total: int
    success_count: int
    fail_count: int
    updated: List[UUID] = Field(default_factory=list)
    failures: List[MassUpdateFailureDTO] = Field(default_factory=list)


class TransitionDTO(BaseModel):
    """Immutable DTO for one entry of an order's status timeline."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    from_status: str
    to_status: str
    actor_id: Optional[int]
    is_override: bool
    override_reason: str
    timestamp: datetime

    @classmethod
    def from_entity(cls, record: OrderStatusTransition) -> TransitionDTO:
        return cls(
            id=record.id,
            from_status=record.from_status,
            to_status=record.to_status,
            actor_id=record.actor_id,
            is_override=record.is_override,
            override_reason=record.override_reason,
            timestamp=record.created_at,
        )

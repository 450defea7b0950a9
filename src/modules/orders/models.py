"""Order and OrderStatusTransition models.

Business rules implemented here:
- ``fulfillment_mode`` and ``cancellation_window_minutes`` are fixed once
  the order is persisted; the window is a snapshot of the platform setting
  so later policy changes never reach existing orders.
- Order number auto-generated as human-readable identifier.
- Transition records are append-only: never updated, never deleted.

Transition *rules* live in ``modules.orders.transitions``; the model only
exposes convenience wrappers around them.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    CLIENT_CANCELLABLE_STATES,
    ORDER_NUMBER_MAX_RETRIES,
    FulfillmentMode,
    OrderStatus,
)
from modules.orders.exceptions import TransitionRecordImmutable
from modules.orders.transitions import is_terminal, next_status
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

IMMUTABLE_ORDER_FIELDS = ("fulfillment_mode", "cancellation_window_minutes")


def default_cancellation_window() -> int:
    return settings.ORDER_CANCELLATION_WINDOW_MINUTES


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root, as seen from the cook dashboard.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    client: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    fulfillment_mode: models.CharField = models.CharField(
        max_length=20,
        choices=FulfillmentMode.choices,
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING_PAYMENT,
    )
    grand_total: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    cancellation_window_minutes: models.PositiveIntegerField = (
        models.PositiveIntegerField(default=default_cancellation_window)
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    fulfilled_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        permissions = [
            ("manage_orders", "Can manage order statuses from the dashboard"),
            ("override_order_status", "Can override order status transitions"),
        ]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = {
            name: getattr(instance, name)
            for name in IMMUTABLE_ORDER_FIELDS
            if name in field_names
        }
        return instance

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return is_terminal(self.status)

    @property
    def next_valid_status(self) -> Optional[str]:
        return next_status(self.fulfillment_mode, self.status)

    # ------------------------------------------------------------------
    # Client cancellation window
    # ------------------------------------------------------------------

    @property
    def cancellation_deadline(self) -> Optional[datetime]:
        """When the client loses the right to cancel.

        The window starts when the order was paid, falling back to its
        creation time.
        """
        reference = self.paid_at or self.created_at
        if reference is None:
            return None
        return reference + timedelta(minutes=self.cancellation_window_minutes)

    def is_within_cancellation_window(self, now: Optional[datetime] = None) -> bool:
        deadline = self.cancellation_deadline
        if deadline is None or self.cancellation_window_minutes <= 0:
            return False
        return (now or timezone.now()) < deadline

    def can_be_cancelled_by_client(self, now: Optional[datetime] = None) -> bool:
        return (
            self.status in CLIENT_CANCELLABLE_STATES
            and self.is_within_cancellation_window(now)
        )

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _check_immutable_fields(self) -> None:
        loaded = getattr(self, "_loaded_values", None)
        if not loaded:
            return
        errors = {
            name: f"{name} cannot be changed once the order exists."
            for name, original in loaded.items()
            if getattr(self, name) != original
        }
        if errors:
            logger.warning(
                "order.immutable_field_change_rejected",
                order_id=str(self.pk),
                fields=sorted(errors),
            )
            raise ValidationError(errors)

    def save(self, *args: Any, **kwargs: Any) -> None:
        self._check_immutable_fields()
        if not self.order_number:
            for attempt in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)
        self._loaded_values = {
            name: getattr(self, name) for name in IMMUTABLE_ORDER_FIELDS
        }

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderStatusTransition(BaseModel):
    """Append-only audit trail for order status transitions.

    One record per accepted transition.  ``actor`` is nullable: ``None``
    means the change was performed by the system (e.g. automatic refund).
    Overrides must carry the reason that justified them; normal
    transitions must not carry one.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="transitions",
    )
    from_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    to_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    actor: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_transitions",
    )
    is_override: models.BooleanField = models.BooleanField(default=False)
    override_reason: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_transitions"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="ost_order_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(is_override=False, override_reason="")
                    | (models.Q(is_override=True) & ~models.Q(override_reason=""))
                ),
                name="ost_override_reason_consistent",
            ),
        ]

    @property
    def timestamp(self) -> datetime:
        return self.created_at

    def clean(self) -> None:
        super().clean()
        if self.is_override and not self.override_reason.strip():
            raise ValidationError(
                {"override_reason": "Overrides require a non-empty reason."}
            )
        if not self.is_override and self.override_reason:
            raise ValidationError(
                {"override_reason": "Only overrides carry a reason."}
            )

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise TransitionRecordImmutable(
                f"Transition {self.pk} already recorded; records are append-only."
            )
        self.clean()
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise TransitionRecordImmutable("Transition records cannot be deleted.")

    def __str__(self) -> str:
        marker = " [override]" if self.is_override else ""
        return f"{self.order_id}: {self.from_status} -> {self.to_status}{marker}"

"""Order status service layer (Use Cases).

Wraps the pure transition validator with everything it deliberately
leaves out: row locking, authorization of overrides, persistence of the
status and its transition record, lifecycle timestamps, domain events
and logging.  Every write is atomic; the service defines the
unit-of-work boundary.

Business rules enforced:
- Status changes are validated by ``validate_transition`` against the
  status read under ``SELECT FOR UPDATE``.
- Overrides require ``orders.override_order_status`` and a reason, and
  are never refunded.
- Every accepted change appends exactly one transition record.
- Client cancellation only from paid/confirmed, within the order's
  cancellation window snapshot.
- Batch updates validate and commit each order on its own.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.orders.constants import (
    CLIENT_CANCELLABLE_STATES,
    STATUS_TIMESTAMP_FIELDS,
    OrderStatus,
)
from modules.orders.dtos import (
    MassStatusUpdateDTO,
    MassStatusUpdateResultDTO,
    MassUpdateFailureDTO,
    TransitionDTO,
)
from modules.orders.events import OrderCancelled, OrderRefunded, OrderStatusChanged
from modules.orders.exceptions import (
    CancellationWindowExpired,
    InvalidTransition,
    OrderNotFound,
    OrderTransitionError,
    OverrideNotAllowed,
    TerminalStateError,
    rejection_to_exception,
)
from modules.orders.permissions import can_override
from modules.orders.transitions import (
    TransitionAccepted,
    statuses_after,
    validate_transition,
)

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderStatusService:
    """Application service for order status use-cases.

    Receives the repository and the override authorization check via
    constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        override_authorizer: Callable[[Any], bool] = can_override,
    ) -> None:
        self._order_repo = order_repository
        self._can_override = override_authorizer

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def update_status(
        self,
        order_id: UUID | str,
        new_status: str,
        actor: Any,
        *,
        override: bool = False,
        override_reason: Optional[str] = None,
    ) -> Order:
        """Move an order to ``new_status``.

        Raises:
            OrderNotFound: order does not exist.
            OverrideNotAllowed: override requested by an unauthorised actor.
            InvalidTransition / TerminalStateError / MissingOverrideReason:
                the validator rejected the change.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
            actor_id=getattr(actor, "pk", None),
        )

        if override and not self._can_override(actor):
            log.warning("order.override_denied")
            raise OverrideNotAllowed("You are not allowed to override order statuses.")

        result = validate_transition(
            order,
            new_status,
            actor,
            override=override,
            override_reason=override_reason,
        )
        if not result.accepted:
            log.warning("order.invalid_transition", reason=result.reason)
            raise rejection_to_exception(result)

        self._apply(order, result)
        log.info("order.status_updated", is_override=result.is_override)
        return order

    @transaction.atomic
    def cancel_order(
        self,
        order_id: UUID | str,
        actor: Any,
        *,
        now: Optional[datetime] = None,
    ) -> Order:
        """Client-initiated cancellation.

        Both status and time window are re-checked under the row lock so a
        cook confirming or preparing concurrently wins cleanly.

        Raises:
            OrderNotFound: order does not exist or belongs to another client.
            InvalidTransition: order is not paid/confirmed.
            TerminalStateError: order is already terminal.
            CancellationWindowExpired: the window snapshot has elapsed.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order or order.client_id != getattr(actor, "pk", None):
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order_id), current_status=order.status)
        now = now or timezone.now()

        if order.status not in CLIENT_CANCELLABLE_STATES:
            log.warning("order.client_cancel_not_allowed")
            error_class = TerminalStateError if order.is_terminal else InvalidTransition
            raise error_class(
                "This order can no longer be cancelled.",
                current_status=order.status,
                attempted_status=OrderStatus.CANCELLED,
                next_valid_status=order.next_valid_status,
            )
        if not order.is_within_cancellation_window(now):
            log.warning(
                "order.cancellation_window_expired",
                deadline=str(order.cancellation_deadline),
            )
            raise CancellationWindowExpired(
                "The cancellation window for this order has expired.",
                current_status=order.status,
                attempted_status=OrderStatus.CANCELLED,
                next_valid_status=order.next_valid_status,
            )

        result = validate_transition(order, OrderStatus.CANCELLED, actor)
        if not result.accepted:
            raise rejection_to_exception(result)

        self._apply(order, result, now=now)
        log.info("order.cancelled_by_client")
        return order

    @transaction.atomic
    def refund_order(self, order_id: UUID | str) -> Optional[Order]:
        """System transition ``cancelled -> refunded``.

        Returns ``None`` (and changes nothing) when the order is missing,
        already refunded, was never paid, or is not cancelled.
        """
        order = self._order_repo.get_for_update(str(order_id))
        log = logger.bind(order_id=str(order_id))
        if not order:
            log.error("order.refund_skipped", reason="not_found")
            return None
        if order.status == OrderStatus.REFUNDED:
            log.info("order.refund_skipped", reason="already_refunded")
            return None
        if order.paid_at is None:
            log.info("order.refund_skipped", reason="never_paid")
            return None

        result = validate_transition(order, OrderStatus.REFUNDED)
        if not result.accepted:
            log.warning("order.refund_skipped", reason=result.reason, status=order.status)
            return None

        self._apply(order, result)
        log.info("order.refunded", grand_total=str(order.grand_total))
        return order

    def mass_update_status(
        self, dto: MassStatusUpdateDTO, actor: Any
    ) -> MassStatusUpdateResultDTO:
        """Apply ``dto.status`` to every order in the batch independently.

        Each order runs in its own transaction: a rejection is reported
        in ``failures`` and never prevents the other orders from updating.
        Overrides are not available in batches.
        """
        log = logger.bind(
            target_status=dto.status,
            order_count=len(dto.order_ids),
            actor_id=getattr(actor, "pk", None),
        )
        log.info("order.mass_update_started")

        updated: List[UUID] = []
        failures: List[MassUpdateFailureDTO] = []
        for order_id in dto.order_ids:
            try:
                self.update_status(order_id, dto.status, actor)
            except OrderNotFound as exc:
                failures.append(MassUpdateFailureDTO(order_id=order_id, message=str(exc)))
            except OrderTransitionError as exc:
                order = self._order_repo.get_by_id(str(order_id))
                failures.append(
                    MassUpdateFailureDTO(
                        order_id=order_id,
                        order_number=order.order_number if order else None,
                        current_status=exc.current_status,
                        next_valid_status=exc.next_valid_status,
                        message=exc.message,
                    )
                )
            else:
                updated.append(order_id)

        result = MassStatusUpdateResultDTO(
            target_status=dto.status,
            total=len(dto.order_ids),
            success_count=len(updated),
            fail_count=len(failures),
            updated=updated,
            failures=failures,
        )
        log.info(
            "order.mass_update_finished",
            success_count=result.success_count,
            fail_count=result.fail_count,
        )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None):
        """Return orders, optionally filtered."""
        return self._order_repo.list(filters)

    def get_transitions(self, order_id: str) -> List[TransitionDTO]:
        """Status timeline of an order, oldest first.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        self.get_order(order_id)
        return [
            TransitionDTO.from_entity(record)
            for record in self._order_repo.list_transitions(order_id)
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(
        self,
        order: Order,
        result: TransitionAccepted,
        now: Optional[datetime] = None,
    ) -> None:
        """Persist an accepted transition on the locked order."""
        now = now or timezone.now()
        actor = result.actor
        actor_id = getattr(actor, "pk", None)

        order.status = result.to_status
        if result.is_override:
            # Moving back: drop timestamps of statuses the order no longer holds.
            for later in statuses_after(order.fulfillment_mode, result.to_status):
                later_field = STATUS_TIMESTAMP_FIELDS.get(later)
                if later_field:
                    setattr(order, later_field, None)
        timestamp_field = STATUS_TIMESTAMP_FIELDS.get(result.to_status)
        if timestamp_field:
            setattr(order, timestamp_field, now)

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                from_status=result.from_status,
                to_status=result.to_status,
                actor_id=actor_id,
                is_override=result.is_override,
                override_reason=result.override_reason,
            )
        )
        if result.to_status == OrderStatus.CANCELLED and not result.is_override:
            # OrderCancelled triggers the refund; overrides never refund.
            order.add_domain_event(
                OrderCancelled(
                    aggregate_id=order.id,
                    from_status=result.from_status,
                    actor_id=actor_id,
                )
            )
        elif result.to_status == OrderStatus.REFUNDED:
            order.add_domain_event(OrderRefunded(aggregate_id=order.id))

        self._order_repo.save(order)
        self._order_repo.add_transition(
            order=order,
            from_status=result.from_status,
            to_status=result.to_status,
            actor=actor,
            is_override=result.is_override,
            override_reason=result.override_reason,
        )


def build_order_status_service() -> OrderStatusService:
    """Service wired to the Django ORM repository."""
    from modules.orders.repositories.django_repository import OrderDjangoRepository

    return OrderStatusService(order_repository=OrderDjangoRepository())

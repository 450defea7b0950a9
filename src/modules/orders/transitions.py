"""Order status transition validation.

A pure decision function: given an order (anything exposing
``fulfillment_mode`` and ``status``), a requested status and optional
override details, decide whether the move is allowed.  Nothing here reads
or writes the database, logs, or checks permissions; callers do that
around it, inside the same lock that read ``order.status``.

Rules:

* Normal moves go exactly one step forward along the path of the order's
  fulfillment mode (``STATUS_PATHS``).  Skipping, moving backward,
  repeating the current status or crossing onto the other mode's path are
  rejected.
* ``cancelled`` is reachable from ``CANCELLABLE_STATES`` and ``refunded``
  only from ``cancelled``.
* Terminal orders accept nothing without an override.
* An override accepts any combination as long as a non-blank reason is
  given.  Whether the actor may override is decided by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Tuple, Union

from django.db import models

from modules.orders.constants import (
    CANCELLABLE_STATES,
    STATUS_PATHS,
    TERMINAL_STATES,
    OrderStatus,
)


class StatusBearing(Protocol):
    fulfillment_mode: str
    status: str


class RejectionReason(models.TextChoices):
    INVALID_TRANSITION = "invalid_transition", "Invalid transition"
    TERMINAL_STATE = "terminal_state", "Terminal state"
    MISSING_OVERRIDE_REASON = "missing_override_reason", "Missing override reason"


@dataclass(frozen=True)
class TransitionAccepted:
    from_status: str
    to_status: str
    next_valid_status: Optional[str]
    is_override: bool = False
    override_reason: str = ""
    actor: Any = None

    accepted = True


@dataclass(frozen=True)
class TransitionRejected:
    reason: str
    message: str
    current_status: str
    attempted_status: str
    next_valid_status: Optional[str]

    accepted = False


TransitionResult = Union[TransitionAccepted, TransitionRejected]


def status_path(fulfillment_mode: str) -> Tuple[str, ...]:
    """Ordered statuses an order of ``fulfillment_mode`` moves through."""
    try:
        return STATUS_PATHS[fulfillment_mode]
    except KeyError:
        raise ValueError(f"Unknown fulfillment mode: {fulfillment_mode!r}") from None


def next_status(fulfillment_mode: str, status: str) -> Optional[str]:
    """The single forward step from ``status``, or ``None`` at the end/off path."""
    path = status_path(fulfillment_mode)
    if status not in path:
        return None
    index = path.index(status)
    return path[index + 1] if index + 1 < len(path) else None


def statuses_after(fulfillment_mode: str, status: str) -> Tuple[str, ...]:
    """Statuses an order can only have reached after ``status``.

    The path is followed by ``cancelled`` and then ``refunded``.  A status
    off the order's path only precedes those two.
    """
    if status == OrderStatus.REFUNDED:
        return ()
    if status == OrderStatus.CANCELLED:
        return (OrderStatus.REFUNDED,)
    path = status_path(fulfillment_mode)
    later = path[path.index(status) + 1 :] if status in path else ()
    return later + (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def validate_transition(
    order: StatusBearing,
    requested_status: str,
    actor: Any = None,
    *,
    override: bool = False,
    override_reason: Optional[str] = None,
) -> TransitionResult:
    """Decide whether ``order`` may move to ``requested_status``.

    Returns ``TransitionAccepted`` (whose ``next_valid_status`` is the step
    after ``requested_status``) or ``TransitionRejected`` (whose
    ``next_valid_status`` is the step after the current status, ``None``
    for terminal orders).

    Raises:
        ValueError: the order's fulfillment mode is unknown.
    """
    mode = order.fulfillment_mode
    current = order.status
    path = status_path(mode)
    expected = next_status(mode, current)

    def reject(reason: str, message: str, next_valid: Optional[str]) -> TransitionRejected:
        return TransitionRejected(
            reason=reason,
            message=message,
            current_status=current,
            attempted_status=requested_status,
            next_valid_status=next_valid,
        )

    def accept(is_override: bool = False, reason: str = "") -> TransitionAccepted:
        return TransitionAccepted(
            from_status=current,
            to_status=requested_status,
            next_valid_status=next_status(mode, requested_status),
            is_override=is_override,
            override_reason=reason,
            actor=actor,
        )

    if requested_status not in OrderStatus.values:
        return reject(
            RejectionReason.INVALID_TRANSITION,
            f"Unknown status {requested_status!r}.",
            expected,
        )

    if override:
        reason = (override_reason or "").strip()
        if not reason:
            return reject(
                RejectionReason.MISSING_OVERRIDE_REASON,
                "A reason is required for administrative overrides.",
                expected,
            )
        return accept(is_override=True, reason=reason)

    if expected is not None and requested_status == expected:
        return accept()
    if requested_status == OrderStatus.CANCELLED and current in CANCELLABLE_STATES:
        return accept()
    if requested_status == OrderStatus.REFUNDED and current == OrderStatus.CANCELLED:
        return accept()

    if is_terminal(current):
        return reject(
            RejectionReason.TERMINAL_STATE,
            f"Order is {current} and cannot be updated.",
            None,
        )

    return reject(
        RejectionReason.INVALID_TRANSITION,
        _explain(mode, path, current, requested_status, expected),
        expected,
    )


def _explain(
    mode: str,
    path: Tuple[str, ...],
    current: str,
    requested: str,
    expected: Optional[str],
) -> str:
    if requested == current:
        return f"Order is already {current}."
    if requested == OrderStatus.CANCELLED:
        return f"Orders cannot be cancelled once they are {current}."
    if requested == OrderStatus.REFUNDED:
        return "Orders can only be refunded after they are cancelled."
    if requested not in path:
        return f"{requested} is not a valid status for {mode} orders."
    if current in path and path.index(requested) < path.index(current):
        return f"Cannot move order backward from {current} to {requested}."
    return (
        f"Cannot transition from {current} to {requested}. "
        f"Next valid status: {expected}."
    )


def valid_next_statuses(order: StatusBearing, can_override: bool = False) -> List[str]:
    """Statuses the dashboard should offer as actions for ``order``.

    ``can_override`` adds cancellation of any non-terminal order, the way
    an administrator would reach it; the validator still requires a reason.
    """
    statuses: List[str] = []
    forward = next_status(order.fulfillment_mode, order.status)
    if forward is not None:
        statuses.append(forward)
    if order.status in CANCELLABLE_STATES or (
        can_override and not is_terminal(order.status)
    ):
        statuses.append(OrderStatus.CANCELLED)
    if order.status == OrderStatus.CANCELLED:
        statuses.append(OrderStatus.REFUNDED)
    return statuses

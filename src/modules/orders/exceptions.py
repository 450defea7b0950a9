"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Type

if TYPE_CHECKING:
    from modules.orders.transitions import TransitionRejected


class OrderNotFound(Exception):
    """The requested order does not exist (or is not visible to the actor)."""


class OrderTransitionError(Exception):
    """Base for rejected status transitions.

    Carries the context the dashboard needs to show an actionable error.
    """

    def __init__(
        self,
        message: str,
        current_status: str = "",
        attempted_status: str = "",
        next_valid_status: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.current_status = current_status
        self.attempted_status = attempted_status
        self.next_valid_status = next_valid_status

    def as_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "current_status": self.current_status,
            "attempted_status": self.attempted_status,
            "next_valid_status": self.next_valid_status,
        }


class InvalidTransition(OrderTransitionError):
    """Not the next status and not an allowed cancel/refund."""


class TerminalStateError(OrderTransitionError):
    """The order is terminal and no override was requested."""


class MissingOverrideReason(OrderTransitionError):
    """An override was requested without a non-blank reason."""


class CancellationWindowExpired(OrderTransitionError):
    """The client's cancellation window for the order has closed."""


class OverrideNotAllowed(Exception):
    """The actor lacks the ``orders.override_order_status`` permission."""


class TransitionRecordImmutable(Exception):
    """Transition records are append-only."""


_REJECTION_EXCEPTIONS: Dict[str, Type[OrderTransitionError]] = {
    "invalid_transition": InvalidTransition,
    "terminal_state": TerminalStateError,
    "missing_override_reason": MissingOverrideReason,
}


def rejection_to_exception(result: TransitionRejected) -> OrderTransitionError:
    """Build the exception matching a validator rejection."""
    exc_class = _REJECTION_EXCEPTIONS.get(result.reason, InvalidTransition)
    return exc_class(
        result.message,
        current_status=result.current_status,
        attempted_status=result.attempted_status,
        next_valid_status=result.next_valid_status,
    )

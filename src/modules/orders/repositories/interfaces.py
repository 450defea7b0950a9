"""Order repository interface.

Extends ``IRepository[Order]`` with the row lock and transition-log
operations the status service needs.  The Service Layer depends
exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusTransition


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes its append-only ``OrderStatusTransition`` log.
    """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock until commit."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Any:
        """List orders with optional filters."""

    @abstractmethod
    def add_transition(
        self,
        order: Order,
        from_status: str,
        to_status: str,
        actor: Any = None,
        is_override: bool = False,
        override_reason: str = "",
    ) -> OrderStatusTransition:
        """Append a record to the order's transition log."""

    @abstractmethod
    def list_transitions(self, order_id: str) -> List[OrderStatusTransition]:
        """Transition log for an order, oldest first."""

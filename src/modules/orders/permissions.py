"""Authorization for order operations.

``can_override`` is the collaborator the status service consults before
taking the administrative override path.  ``CanManageOrders`` guards the
dashboard endpoints.
"""

from __future__ import annotations

from typing import Any

from rest_framework.permissions import BasePermission

MANAGE_ORDERS_PERMISSION = "orders.manage_orders"
OVERRIDE_PERMISSION = "orders.override_order_status"


def can_override(actor: Any) -> bool:
    if actor is None or not getattr(actor, "is_active", False):
        return False
    return actor.is_superuser or actor.has_perm(OVERRIDE_PERMISSION)


def can_manage_orders(actor: Any) -> bool:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return False
    return actor.is_staff or actor.has_perm(MANAGE_ORDERS_PERMISSION)


class CanManageOrders(BasePermission):
    """Cook or manager with access to the orders dashboard."""

    message = "You do not have permission to manage orders."

    def has_permission(self, request, view) -> bool:
        return can_manage_orders(request.user)

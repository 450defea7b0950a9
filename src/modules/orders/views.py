"""Order API views.

Exposes the ``OrderStatusService`` via HTTP using a DRF ViewSet.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from uuid import UUID

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import MassStatusUpdateDTO, UpdateStatusDTO
from modules.orders.exceptions import (
    OrderNotFound,
    OrderTransitionError,
    OverrideNotAllowed,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.permissions import CanManageOrders
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    MassStatusUpdateSerializer,
    OrderListSerializer,
    OrderSerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import OrderStatusService

_NOT_FOUND = {"detail": "Order not found."}


class OrderViewSet(GenericViewSet):
    """ViewSet for the cook dashboard's order operations.

    Uses ``OrderStatusService`` with an injected repository (DIP).
    Does **not** extend ``ModelViewSet``: all writes go through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_number", "client__username"]
    ordering_fields = ["created_at", "grand_total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._repository = OrderDjangoRepository()
        self._service = OrderStatusService(order_repository=self._repository)

    def get_permissions(self):
        if self.action == "cancel":
            return [IsAuthenticated()]
        return [IsAuthenticated(), CanManageOrders()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scope per action."""
        throttle_scope: str | None
        if self.action in {"list", "retrieve", "transitions"}:
            throttle_scope = "order_listing"
        elif self.action in {"update_status", "cancel"}:
            throttle_scope = "order_status_update"
        elif self.action == "mass_status":
            throttle_scope = "order_mass_update"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return self._repository.list()

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, fulfillment mode, date and total range) is
        handled by ``OrderFilter``.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(str(pk))
        except OrderNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        serializer = OrderSerializer(order, context={"request": request})
        return Response(serializer.data)

    @action(detail=True, methods=["get"])
    def transitions(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/transitions/: status timeline, oldest first."""
        try:
            timeline = self._service.get_transitions(str(pk))
        except OrderNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response([entry.model_dump(mode="json") for entry in timeline])

    # ------------------------------------------------------------------
    # Status Update
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/

        Body: ``{"status": ..., "override": bool, "override_reason": str}``.
        Rejections return 400 with the current, attempted and next valid
        status so the dashboard can tell the cook what to do instead.
        """
        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = UpdateStatusDTO(**serializer.validated_data)

        try:
            order = self._service.update_status(
                order_id=str(pk),
                new_status=dto.status,
                actor=request.user,
                override=dto.override,
                override_reason=dto.override_reason,
            )
        except OrderNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except OverrideNotAllowed as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
        except OrderTransitionError as exc:
            return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)

        order = self._service.get_order(str(order.id))
        return Response(OrderSerializer(order, context={"request": request}).data)

    @action(detail=False, methods=["post"], url_path="mass-status")
    def mass_status(self, request: Request) -> Response:
        """POST /api/v1/orders/mass-status/

        Each order is validated and committed on its own; the response
        reports successes and per-order failures.
        """
        serializer = MassStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = MassStatusUpdateDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return Response(
                {"detail": [error["msg"] for error in exc.errors()]},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = self._service.mass_update_status(dto, actor=request.user)
        return Response(result.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Client cancellation (dedicated action)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels the requesting client's own order while its cancellation
        window is open.  The refund follows asynchronously.
        """
        try:
            order = self._service.cancel_order(
                order_id=UUID(str(pk)),
                actor=request.user,
            )
        except ValueError:
            return Response(
                {"detail": "Invalid order ID format."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except OrderNotFound:
            return Response(_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except OrderTransitionError as exc:
            return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {
                "id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
                "detail": "Order cancelled. The refund will be credited to your wallet.",
            }
        )

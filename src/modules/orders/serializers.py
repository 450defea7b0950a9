"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderStatusTransition
from modules.orders.permissions import can_override
from modules.orders.transitions import valid_next_statuses

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class UpdateStatusSerializer(serializers.Serializer):
    """Validates a single status change request."""

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    override = serializers.BooleanField(required=False, default=False)
    override_reason = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, default=None
    )


class MassStatusUpdateSerializer(serializers.Serializer):
    """Validates a batch status change request."""

    order_ids = serializers.ListField(
        child=serializers.UUIDField(), allow_empty=False
    )
    status = serializers.ChoiceField(choices=OrderStatus.choices)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class TransitionSerializer(serializers.ModelSerializer):
    """Read serializer for transition log records."""

    timestamp = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = OrderStatusTransition
        fields = [
            "id",
            "from_status",
            "to_status",
            "actor_id",
            "is_override",
            "override_reason",
            "timestamp",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for order detail, including the dashboard actions."""

    next_valid_status = serializers.CharField(read_only=True, allow_null=True)
    available_statuses = serializers.SerializerMethodField()
    cancellation_deadline = serializers.DateTimeField(read_only=True, allow_null=True)
    transitions = TransitionSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "client_id",
            "fulfillment_mode",
            "status",
            "next_valid_status",
            "available_statuses",
            "grand_total",
            "cancellation_window_minutes",
            "cancellation_deadline",
            "paid_at",
            "confirmed_at",
            "fulfilled_at",
            "cancelled_at",
            "refunded_at",
            "created_at",
            "updated_at",
            "transitions",
        ]
        read_only_fields = fields

    def get_available_statuses(self, obj: Order) -> list[str]:
        request = self.context.get("request")
        user = getattr(request, "user", None)
        return valid_next_statuses(obj, can_override=can_override(user))


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    next_valid_status = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "client_id",
            "fulfillment_mode",
            "status",
            "next_valid_status",
            "grand_total",
            "created_at",
        ]
        read_only_fields = fields

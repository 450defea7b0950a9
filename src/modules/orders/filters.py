import django_filters

from modules.orders.constants import FulfillmentMode, OrderStatus
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=OrderStatus.choices)
    fulfillment_mode = django_filters.ChoiceFilter(choices=FulfillmentMode.choices)
    order_number = django_filters.CharFilter(lookup_expr="icontains")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(
        field_name="grand_total", lookup_expr="gte"
    )
    max_total = django_filters.NumberFilter(
        field_name="grand_total", lookup_expr="lte"
    )

    class Meta:
        model = Order
        fields = [
            "status",
            "fulfillment_mode",
            "order_number",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]

# apps/orders/filters.py

from typing import ClassVar

import django_filters
from django.db import models

from apps.orders.enums import OrderStatus, PaymentStatus
from apps.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    """Filter set for order listings; applied after the caller's role scope."""

    # Date range filters
    date_from = django_filters.DateFilter(
        field_name="created_at__date",
        lookup_expr="gte",
        help_text="Filter orders from this date (YYYY-MM-DD)",
    )
    date_to = django_filters.DateFilter(
        field_name="created_at__date",
        lookup_expr="lte",
        help_text="Filter orders to this date (YYYY-MM-DD)",
    )

    # Amount range filters
    min_amount = django_filters.NumberFilter(
        field_name="total_amount",
        lookup_expr="gte",
        help_text="Minimum order total",
    )
    max_amount = django_filters.NumberFilter(
        field_name="total_amount",
        lookup_expr="lte",
        help_text="Maximum order total",
    )

    # Status filters
    status = django_filters.ChoiceFilter(
        choices=OrderStatus.choices,
        help_text="Filter by order status",
    )
    payment_status = django_filters.ChoiceFilter(
        choices=PaymentStatus.choices,
        help_text="Filter by payment status",
    )

    has_tracking = django_filters.BooleanFilter(
        method="filter_has_tracking",
        help_text="Filter orders that have tracking numbers",
    )

    class Meta:
        model = Order
        fields: ClassVar[list] = ["status", "payment_status"]

    def filter_has_tracking(self, queryset, name, value):
        no_tracking = models.Q(tracking_number="")
        if value:
            return queryset.exclude(no_tracking)
        return queryset.filter(no_tracking)

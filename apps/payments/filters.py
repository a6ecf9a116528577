# apps/payments/filters.py

from typing import ClassVar

import django_filters

from apps.payments.enums import PaymentMethod, TransactionStatus
from apps.payments.models import Payment


class PaymentFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=TransactionStatus.choices)
    method = django_filters.ChoiceFilter(choices=PaymentMethod.choices)
    order = django_filters.UUIDFilter(field_name="order_id")
    date_from = django_filters.DateFilter(
        field_name="created_at__date",
        lookup_expr="gte",
        help_text="Filter payments from this date (YYYY-MM-DD)",
    )
    date_to = django_filters.DateFilter(
        field_name="created_at__date",
        lookup_expr="lte",
        help_text="Filter payments to this date (YYYY-MM-DD)",
    )

    class Meta:
        model = Payment
        fields: ClassVar[list] = ["status", "method", "order"]

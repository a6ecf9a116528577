# apps/refunds/filters.py

from typing import ClassVar

import django_filters

from apps.refunds.enums import (RefundReasonCategory, RefundRequestStatus,
                                RefundStatus)
from apps.refunds.models import Refund, RefundRequest


class RefundRequestFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=RefundRequestStatus.choices)
    reason_category = django_filters.ChoiceFilter(choices=RefundReasonCategory.choices)
    order = django_filters.UUIDFilter(field_name="order_id")

    class Meta:
        model = RefundRequest
        fields: ClassVar[list] = ["status", "reason_category", "order"]


class RefundFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=RefundStatus.choices)
    order = django_filters.UUIDFilter(field_name="order_id")

    class Meta:
        model = Refund
        fields: ClassVar[list] = ["status", "order"]

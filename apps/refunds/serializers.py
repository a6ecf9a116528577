# apps/refunds/serializers.py

from decimal import Decimal
from typing import ClassVar

from djmoney.contrib.django_rest_framework import MoneyField
from rest_framework import serializers

from apps.core.serializers import BaseModelSerializer, SanitizedCharField
from apps.refunds.enums import RefundMethod, RefundReasonCategory
from apps.refunds.models import Refund, RefundRequest
from apps.refunds.services import BULK_TARGET_STATUSES


class RefundRequestSerializer(BaseModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    customer_email = serializers.EmailField(source="customer.email", read_only=True)
    vendor_name = serializers.SerializerMethodField()
    amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    refund_id = serializers.SerializerMethodField()

    class Meta(BaseModelSerializer.Meta):
        model = RefundRequest
        fields: ClassVar[list] = [
            *BaseModelSerializer.Meta.fields,
            "order",
            "order_number",
            "customer",
            "customer_email",
            "vendor",
            "vendor_name",
            "amount",
            "reason",
            "reason_category",
            "notes",
            "attachments",
            "status",
            "processed_by",
            "processed_at",
            "admin_notes",
            "rejection_reason",
            "refund_id",
        ]
        read_only_fields = fields

    def get_vendor_name(self, obj) -> str:
        return obj.vendor.business_name or str(obj.vendor)

    def get_refund_id(self, obj) -> str | None:
        refund = getattr(obj, "refund", None)
        return str(refund.pk) if refund else None


class RefundRequestCreateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    reason = SanitizedCharField()
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        min_value=Decimal("0.01"),
        help_text="Defaults to the order total",
    )
    reason_category = serializers.ChoiceField(
        choices=RefundReasonCategory.choices, default=RefundReasonCategory.OTHER
    )
    notes = SanitizedCharField(required=False, allow_blank=True, default="")
    attachments = serializers.ListField(
        child=serializers.URLField(), required=False, default=list
    )


class RefundRequestDecisionSerializer(serializers.Serializer):
    admin_notes = SanitizedCharField(required=False, allow_blank=True, default="")


class RefundRequestRejectSerializer(RefundRequestDecisionSerializer):
    rejection_reason = SanitizedCharField()


class RefundRequestNotesSerializer(serializers.Serializer):
    admin_notes = SanitizedCharField(allow_blank=True)


class RefundSerializer(BaseModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    customer_email = serializers.EmailField(source="customer.email", read_only=True)
    amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)

    class Meta(BaseModelSerializer.Meta):
        model = Refund
        fields: ClassVar[list] = [
            *BaseModelSerializer.Meta.fields,
            "refund_request",
            "order",
            "order_number",
            "customer",
            "customer_email",
            "vendor",
            "payment",
            "amount",
            "reason",
            "gateway_payment_id",
            "gateway_refund_id",
            "status",
            "refund_method",
            "notes",
            "processed_by",
            "completed_at",
            "failed_at",
            "attempts",
        ]
        read_only_fields = fields


class RefundInitiateSerializer(serializers.Serializer):
    refund_request_id = serializers.UUIDField()
    gateway_payment_id = serializers.CharField(max_length=100)
    refund_method = serializers.ChoiceField(
        choices=RefundMethod.choices, default=RefundMethod.ORIGINAL_PAYMENT
    )


class RefundStatusNotesSerializer(serializers.Serializer):
    notes = SanitizedCharField(required=False, allow_blank=True)


class RefundBulkStatusSerializer(serializers.Serializer):
    refund_ids = serializers.ListField(
        child=serializers.UUIDField(), allow_empty=False, max_length=100
    )
    status = serializers.ChoiceField(choices=[str(s) for s in BULK_TARGET_STATUSES])
    notes = SanitizedCharField(required=False, allow_blank=True)


class RefundBulkResultSerializer(serializers.Serializer):
    updated = serializers.ListField(child=serializers.UUIDField())
    skipped = serializers.ListField(child=serializers.DictField())

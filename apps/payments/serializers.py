# apps/payments/serializers.py

from decimal import Decimal
from typing import ClassVar

from djmoney.contrib.django_rest_framework import MoneyField
from rest_framework import serializers

from apps.core.serializers import BaseModelSerializer, SanitizedCharField
from apps.payments.enums import PaymentMethod, TransactionStatus
from apps.payments.models import Payment


class PaymentSerializer(BaseModelSerializer):
    """
    Payment attempt as returned by the API. Gateway secrets never leave the
    server; the signature is omitted as well.
    """

    order_number = serializers.CharField(source="order.order_number", read_only=True)
    customer_email = serializers.EmailField(source="customer.email", read_only=True)
    amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    convenience_fee = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    tax = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    total_amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)

    class Meta(BaseModelSerializer.Meta):
        model = Payment
        fields: ClassVar[list] = [
            *BaseModelSerializer.Meta.fields,
            "order",
            "order_number",
            "customer",
            "customer_email",
            "amount",
            "convenience_fee",
            "tax",
            "total_amount",
            "currency",
            "method",
            "status",
            "gateway_order_id",
            "gateway_payment_id",
            "receipt",
            "failure_reason",
            "admin_notes",
            "paid_at",
            "failed_at",
            "refunded_at",
        ]
        read_only_fields = fields


class PaymentInitiateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        min_value=Decimal("0.01"),
        help_text="Defaults to the order total",
    )


class PaymentBreakdownSerializer(serializers.Serializer):
    amount = serializers.CharField()
    convenience_fee = serializers.CharField()
    tax = serializers.CharField()
    total_amount = serializers.CharField()


class PaymentCheckoutSerializer(serializers.Serializer):
    """Checkout payload handed to the client-side gateway widget."""

    key_id = serializers.CharField()
    gateway_order_id = serializers.CharField()
    amount = serializers.IntegerField(help_text="Total in paise")
    currency = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    prefill = serializers.DictField(child=serializers.CharField(allow_blank=True))
    payment_id = serializers.UUIDField()
    breakdown = PaymentBreakdownSerializer()


class PaymentVerifySerializer(serializers.Serializer):
    gateway_order_id = serializers.CharField(max_length=100)
    gateway_payment_id = serializers.CharField(max_length=100)
    signature = serializers.CharField(max_length=255)


class PaymentFailSerializer(serializers.Serializer):
    gateway_order_id = serializers.CharField(max_length=100)
    gateway_payment_id = serializers.CharField(
        max_length=100, required=False, allow_blank=True
    )
    reason = SanitizedCharField(required=False, allow_blank=True, default="")


class PaymentAdminUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TransactionStatus.choices)
    admin_notes = SanitizedCharField(required=False, allow_blank=True)

# apps/orders/serializers.py

"""
Serializers for carts and orders.
Order writes only validate input here; the work happens in OrderService.
"""

from typing import Any, ClassVar

from djmoney.contrib.django_rest_framework import MoneyField
from rest_framework import serializers

from apps.core.serializers import BaseModelSerializer, SanitizedCharField
from apps.orders.models import Cart, CartItem, Order, OrderItem


class CartItemSerializer(BaseModelSerializer):
    """
    Cart line with the product's current price.
    """

    product_id = serializers.UUIDField(read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    unit_price = serializers.DecimalField(
        source="product.price",
        max_digits=12,
        decimal_places=2,
        read_only=True,
    )
    line_total = serializers.SerializerMethodField()

    class Meta(BaseModelSerializer.Meta):
        model = CartItem
        fields: ClassVar[list] = [
            "id",
            "product_id",
            "product_name",
            "unit_price",
            "quantity",
            "line_total",
        ]

    def get_line_total(self, obj: CartItem) -> str:
        return str(obj.product.price * obj.quantity)


class CartSerializer(BaseModelSerializer):
    """
    Serializer for a customer's cart with items and subtotal.
    """

    items = CartItemSerializer(many=True, read_only=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta(BaseModelSerializer.Meta):
        model = Cart
        fields: ClassVar[list] = [
            *BaseModelSerializer.Meta.fields,
            "items",
            "item_count",
            "subtotal",
        ]

    def get_item_count(self, obj: Cart) -> int:
        return sum(item.quantity for item in obj.items.all())


class AddToCartSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateCartItemSerializer(serializers.Serializer):
    """Quantity 0 removes the line."""

    quantity = serializers.IntegerField(min_value=0)


class AddressSerializer(serializers.Serializer):
    full_name = SanitizedCharField(max_length=150)
    phone = SanitizedCharField(max_length=20)
    address_line_1 = SanitizedCharField(max_length=255)
    address_line_2 = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    city = SanitizedCharField(max_length=100)
    state = SanitizedCharField(max_length=100)
    postal_code = SanitizedCharField(max_length=20)
    country = SanitizedCharField(max_length=100, default="India")


class OrderLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateSerializer(serializers.Serializer):
    """
    Input for placing orders. When ``items`` is omitted the cart is used.
    """

    items = OrderLineInputSerializer(many=True, required=False)
    shipping_address = AddressSerializer()
    billing_address = AddressSerializer(required=False, allow_null=True)
    coupon_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    special_instructions = SanitizedCharField(
        required=False,
        allow_blank=True,
        style={"base_template": "textarea.html"},
    )
    payment_reference = SanitizedCharField(
        max_length=100, required=False, allow_blank=True
    )

    def validate_items(self, value: list[dict]) -> list[dict]:
        if not value:
            raise serializers.ValidationError("At least one item is required.")
        return value


class OrderAddressUpdateSerializer(serializers.Serializer):
    shipping_address = AddressSerializer(required=False)
    billing_address = AddressSerializer(required=False, allow_null=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if "shipping_address" not in attrs and "billing_address" not in attrs:
            raise serializers.ValidationError(
                "Provide a shipping or billing address to update."
            )
        return attrs


class ReorderSerializer(serializers.Serializer):
    shipping_address = AddressSerializer(required=False)


class OrderShipmentSerializer(serializers.Serializer):
    """
    Serializer for shipping orders.
    """

    carrier = SanitizedCharField(max_length=100, required=False, allow_blank=True)
    tracking_number = SanitizedCharField(max_length=100, required=False, allow_blank=True)
    estimated_delivery_date = serializers.DateField(required=False, allow_null=True)


class OrderTrackingUpdateSerializer(OrderShipmentSerializer):
    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not any(attrs.values()):
            raise serializers.ValidationError("No tracking fields supplied.")
        return attrs


class OrderCancelSerializer(serializers.Serializer):
    reason = SanitizedCharField(required=False, allow_blank=True, default="")


class OrderItemSerializer(BaseModelSerializer):
    """
    Order line with the product details captured at order time.
    """

    product_id = serializers.UUIDField(read_only=True)
    unit_price = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    line_total = MoneyField(max_digits=12, decimal_places=2, read_only=True)

    class Meta(BaseModelSerializer.Meta):
        model = OrderItem
        fields: ClassVar[list] = [
            "id",
            "product_id",
            "product_name",
            "product_sku",
            "quantity",
            "unit_price",
            "line_total",
        ]


class OrderSummarySerializer(BaseModelSerializer):
    """
    Lightweight serializer for order lists.
    """

    customer_email = serializers.EmailField(source="customer.email", read_only=True)
    vendor_name = serializers.SerializerMethodField()
    total_amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    currency = serializers.CharField(source="total_amount_currency", read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta(BaseModelSerializer.Meta):
        model = Order
        fields: ClassVar[list] = [
            "id",
            "order_number",
            "customer_email",
            "vendor_name",
            "status",
            "payment_status",
            "total_amount",
            "currency",
            "item_count",
            "created_at",
        ]

    def get_vendor_name(self, obj: Order) -> str:
        return obj.vendor.business_name or obj.vendor.email

    def get_item_count(self, obj: Order) -> int:
        return len(obj.items.all())


class OrderSerializer(OrderSummarySerializer):
    """
    Full order with items, addresses, latest payment and timeline.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    subtotal = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    tax_amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    shipping_fee = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    discount_amount = MoneyField(max_digits=12, decimal_places=2, read_only=True)
    shipping_address = serializers.SerializerMethodField()
    billing_address = serializers.SerializerMethodField()
    latest_payment = serializers.SerializerMethodField()
    timeline = serializers.SerializerMethodField()

    class Meta(OrderSummarySerializer.Meta):
        fields: ClassVar[list] = [
            *OrderSummarySerializer.Meta.fields,
            "updated_at",
            "email",
            "subtotal",
            "tax_amount",
            "shipping_fee",
            "discount_amount",
            "coupon_code",
            "shipping_address",
            "billing_same_as_shipping",
            "billing_address",
            "special_instructions",
            "payment_reference",
            "carrier",
            "tracking_number",
            "estimated_delivery_date",
            "cancellation_reason",
            "confirmed_at",
            "processing_at",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "items",
            "latest_payment",
            "timeline",
        ]

    def get_shipping_address(self, obj: Order) -> dict[str, str]:
        return obj.get_shipping_address()

    def get_billing_address(self, obj: Order) -> dict[str, str]:
        return obj.get_billing_address()

    def get_latest_payment(self, obj: Order) -> dict[str, Any] | None:
        payment = obj.payments.order_by("-created_at").first()
        if payment is None:
            return None
        return {
            "id": str(payment.id),
            "status": payment.status,
            "method": payment.method,
            "total_amount": str(payment.total_amount.amount),
            "paid_at": payment.paid_at,
        }

    def get_timeline(self, obj: Order) -> list[dict[str, Any]]:
        return obj.get_timeline()


class OrderTimelineSerializer(serializers.Serializer):
    status = serializers.CharField()
    label = serializers.CharField()
    date = serializers.DateTimeField(allow_null=True)
    completed = serializers.BooleanField()
    reason = serializers.CharField(required=False)

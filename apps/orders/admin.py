# apps/orders/admin.py

from typing import ClassVar

from django.contrib import admin
from django.db import transaction
from django.urls import reverse
from django.utils.html import format_html

from apps.core.exceptions import InvalidTransition
from apps.orders.models import Cart, CartItem, Coupon, Order, OrderItem


class CartItemInline(admin.TabularInline):
    """Inline admin for cart items."""

    model = CartItem
    extra = 0
    readonly_fields: ClassVar[list] = ["created_at", "updated_at"]
    raw_id_fields: ClassVar[list] = ["product"]


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display: ClassVar[list] = ["id", "user", "item_count", "created_at"]
    search_fields: ClassVar[list] = ["user__email"]
    readonly_fields: ClassVar[list] = ["id", "created_at", "updated_at"]
    raw_id_fields: ClassVar[list] = ["user"]
    inlines: ClassVar[list] = [CartItemInline]

    def item_count(self, obj):
        return obj.items.count()

    item_count.short_description = "Items"


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display: ClassVar[list] = [
        "code",
        "discount_type",
        "discount_value",
        "used_count",
        "usage_limit",
        "expires_at",
        "is_active",
    ]
    list_filter: ClassVar[list] = ["discount_type", "is_active"]
    search_fields: ClassVar[list] = ["code", "description"]
    readonly_fields: ClassVar[list] = ["used_count", "created_at", "updated_at"]
    raw_id_fields: ClassVar[list] = ["vendor"]


class OrderItemInline(admin.TabularInline):
    """Inline admin for order items."""

    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields: ClassVar[list] = [
        "product",
        "product_name",
        "product_sku",
        "quantity",
        "unit_price",
        "line_total",
    ]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-mostly admin for orders. Status changes go through the state
    machine, so status and money fields are not editable here.
    """

    list_display: ClassVar[list] = [
        "order_number",
        "customer_link",
        "vendor",
        "status_display",
        "payment_status",
        "total_amount",
        "created_at",
    ]
    list_filter: ClassVar[list] = [
        "status",
        "payment_status",
        "created_at",
        "shipped_at",
        "delivered_at",
    ]
    search_fields: ClassVar[list] = [
        "order_number",
        "customer__email",
        "vendor__email",
        "shipping_full_name",
    ]
    readonly_fields: ClassVar[list] = [
        "id",
        "order_number",
        "customer",
        "vendor",
        "status",
        "payment_status",
        "subtotal",
        "tax_amount",
        "shipping_fee",
        "discount_amount",
        "total_amount",
        "coupon_code",
        "confirmed_at",
        "processing_at",
        "shipped_at",
        "delivered_at",
        "cancelled_at",
        "stock_committed_at",
        "stock_released_at",
        "created_at",
        "updated_at",
    ]
    inlines: ClassVar[list] = [OrderItemInline]
    actions: ClassVar[list] = ["cancel_orders"]

    fieldsets = (
        (
            "Order Information",
            {
                "fields": (
                    "order_number",
                    "customer",
                    "vendor",
                    "status",
                    "payment_status",
                    "email",
                ),
            },
        ),
        (
            "Shipping Address",
            {
                "fields": (
                    "shipping_full_name",
                    "shipping_phone",
                    "shipping_address_line_1",
                    "shipping_address_line_2",
                    "shipping_city",
                    "shipping_state",
                    "shipping_postal_code",
                    "shipping_country",
                ),
            },
        ),
        (
            "Billing Address",
            {
                "fields": (
                    "billing_same_as_shipping",
                    "billing_full_name",
                    "billing_phone",
                    "billing_address_line_1",
                    "billing_address_line_2",
                    "billing_city",
                    "billing_state",
                    "billing_postal_code",
                    "billing_country",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Financial Information",
            {
                "fields": (
                    "subtotal",
                    "tax_amount",
                    "shipping_fee",
                    "discount_amount",
                    "total_amount",
                    "coupon_code",
                ),
            },
        ),
        (
            "Fulfillment",
            {
                "fields": (
                    "carrier",
                    "tracking_number",
                    "estimated_delivery_date",
                    "cancellation_reason",
                ),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "confirmed_at",
                    "processing_at",
                    "shipped_at",
                    "delivered_at",
                    "cancelled_at",
                    "stock_committed_at",
                    "stock_released_at",
                    "created_at",
                    "updated_at",
                ),
                "classes": ("collapse",),
            },
        ),
    )

    def customer_link(self, obj):
        url = reverse("admin:accounts_user_change", args=[obj.customer_id])
        return format_html('<a href="{}">{}</a>', url, obj.customer.email)

    customer_link.short_description = "Customer"

    def status_display(self, obj):
        """Display status with color coding."""
        colors = {
            "pending": "orange",
            "confirmed": "blue",
            "processing": "purple",
            "shipped": "green",
            "delivered": "darkgreen",
            "cancelled": "red",
        }
        return format_html(
            '<span style="color: {};">{}</span>',
            colors.get(obj.status, "black"),
            obj.get_status_display(),
        )

    status_display.short_description = "Status"

    @admin.action(description="Cancel selected orders and restore stock")
    def cancel_orders(self, request, queryset):
        cancelled = 0
        for order_id in queryset.values_list("id", flat=True):
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order_id)
                try:
                    order.cancel(reason=f"Cancelled by administrator {request.user.email}")
                except InvalidTransition:
                    continue
            cancelled += 1
        self.message_user(request, f"Cancelled {cancelled} orders.")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("customer", "vendor")

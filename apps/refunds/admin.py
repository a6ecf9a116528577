# apps/refunds/admin.py

from typing import ClassVar

from django.contrib import admin

from apps.refunds.models import Refund, RefundRequest


@admin.register(RefundRequest)
class RefundRequestAdmin(admin.ModelAdmin):
    list_display: ClassVar[list] = [
        "id",
        "order",
        "customer",
        "vendor",
        "amount",
        "reason_category",
        "status",
        "created_at",
    ]
    list_filter: ClassVar[list] = ["status", "reason_category", "created_at"]
    search_fields: ClassVar[list] = ["order__order_number", "customer__email", "reason"]
    readonly_fields: ClassVar[list] = [
        "id",
        "order",
        "customer",
        "vendor",
        "amount",
        "status",
        "processed_by",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields: ClassVar[list] = ["order", "customer", "vendor"]


@admin.register(Refund)
class RefundAdmin(admin.ModelAdmin):
    """Settlement records are written by the refund service; read only here."""

    list_display: ClassVar[list] = [
        "id",
        "order",
        "customer",
        "amount",
        "status",
        "attempts",
        "gateway_refund_id",
        "created_at",
    ]
    list_filter: ClassVar[list] = ["status", "refund_method", "created_at"]
    search_fields: ClassVar[list] = [
        "order__order_number",
        "gateway_payment_id",
        "gateway_refund_id",
    ]
    readonly_fields: ClassVar[list] = [
        field.name for field in Refund._meta.concrete_fields
    ]

    def has_add_permission(self, request):
        return False

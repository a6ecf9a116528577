# apps/payments/admin.py

from typing import ClassVar

from django.contrib import admin

from apps.payments.models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Payments are settled by the gateway callbacks; only notes are editable.
    """

    list_display: ClassVar[list] = [
        "id",
        "order",
        "customer",
        "method",
        "status",
        "total_amount",
        "paid_at",
        "created_at",
    ]
    list_filter: ClassVar[list] = ["status", "method", "created_at"]
    search_fields: ClassVar[list] = [
        "gateway_order_id",
        "gateway_payment_id",
        "order__order_number",
        "customer__email",
    ]
    readonly_fields: ClassVar[list] = [
        "id",
        "order",
        "customer",
        "amount",
        "convenience_fee",
        "tax",
        "total_amount",
        "currency",
        "method",
        "status",
        "gateway_order_id",
        "gateway_payment_id",
        "gateway_signature",
        "receipt",
        "failure_reason",
        "paid_at",
        "failed_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

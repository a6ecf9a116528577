# apps/payments/models.py

from typing import ClassVar

import structlog
from django.db import models
from django.db.models import Q
from django.utils import timezone
from djmoney.models.fields import MoneyField

from apps.core.models import AuditStampedModelBase
from apps.payments.enums import PaymentMethod, TransactionStatus

logger = structlog.get_logger(__name__)


class PaymentQuerySet(models.QuerySet):
    def visible_to(self, user):
        """Customers see their payments, vendors those on their orders."""
        role = getattr(user, "role", None)
        if role == "admin":
            return self
        if role == "vendor":
            from apps.orders.models import Order

            order_ids = list(Order.objects.vendor_order_ids(user))
            return self.filter(order_id__in=order_ids)
        if role == "customer":
            return self.filter(customer=user)
        return self.none()

    def completed(self):
        return self.filter(status=TransactionStatus.COMPLETED)

    def settled(self):
        """Payments that took money, whether or not it was later refunded."""
        return self.filter(
            status__in=[TransactionStatus.COMPLETED, TransactionStatus.REFUNDED]
        )

    def stale_pending(self, cutoff):
        return self.filter(
            status=TransactionStatus.PENDING,
            gateway_order_id__isnull=False,
            created_at__lt=cutoff,
        )


class Payment(AuditStampedModelBase):
    """
    One attempt to pay an order through the gateway.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    customer = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    amount = MoneyField(max_digits=12, decimal_places=2, default_currency="INR")
    convenience_fee = MoneyField(max_digits=12, decimal_places=2, default_currency="INR")
    tax = MoneyField(max_digits=12, decimal_places=2, default_currency="INR")
    total_amount = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        help_text="amount + convenience fee + tax; charged through the gateway",
    )
    currency = models.CharField(max_length=3, default="INR")

    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.PENDING,
        db_index=True,
    )

    gateway_order_id = models.CharField(
        max_length=100, unique=True, null=True, blank=True
    )
    gateway_payment_id = models.CharField(
        max_length=100, unique=True, null=True, blank=True
    )
    gateway_signature = models.CharField(max_length=255, blank=True)
    receipt = models.CharField(max_length=100, blank=True)

    failure_reason = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    objects = PaymentQuerySet.as_manager()

    class Meta:
        db_table = "payments_payment"
        ordering: ClassVar[list[str]] = ["-created_at"]
        constraints: ClassVar[list] = [
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(status="completed"),
                name="unique_completed_payment_per_order",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment {self.pk} ({self.status})"

    STATUS_TIMESTAMPS: ClassVar[dict] = {
        TransactionStatus.COMPLETED: "paid_at",
        TransactionStatus.FAILED: "failed_at",
        TransactionStatus.REFUNDED: "refunded_at",
    }

    def set_status(self, status: str, extra_fields: list[str] | None = None) -> None:
        """Store ``status`` and stamp its timestamp when entering it."""
        previous = self.status
        self.status = status
        fields = ["status", "updated_at", *(extra_fields or [])]
        timestamp_field = self.STATUS_TIMESTAMPS.get(status)
        if timestamp_field:
            setattr(self, timestamp_field, timezone.now())
            fields.append(timestamp_field)
        self.save(update_fields=fields)
        logger.info(
            "payment_status_changed",
            payment_id=str(self.pk),
            order_id=str(self.order_id),
            from_status=previous,
            to_status=status,
        )

    def mark_completed(self, gateway_payment_id: str, signature: str = "") -> None:
        self.gateway_payment_id = gateway_payment_id
        self.gateway_signature = signature or ""
        self.set_status(
            TransactionStatus.COMPLETED, ["gateway_payment_id", "gateway_signature"]
        )

    def mark_failed(self, reason: str) -> None:
        self.failure_reason = reason
        self.set_status(TransactionStatus.FAILED, ["failure_reason"])

    def mark_refunded(self) -> None:
        self.set_status(TransactionStatus.REFUNDED)

# apps/refunds/models.py

from typing import ClassVar

import structlog
from django.db import models
from django.utils import timezone
from djmoney.models.fields import MoneyField

from apps.core.models import AuditStampedModelBase
from apps.refunds.enums import (RefundMethod, RefundReasonCategory,
                                RefundRequestStatus, RefundStatus)

logger = structlog.get_logger(__name__)


class RoleScopedQuerySet(models.QuerySet):
    def visible_to(self, user):
        """Customers see what they asked for, vendors what was asked of them."""
        role = getattr(user, "role", None)
        if role == "admin":
            return self
        if role == "vendor":
            return self.filter(vendor=user)
        if role == "customer":
            return self.filter(customer=user)
        return self.none()


class RefundRequest(AuditStampedModelBase):
    """
    A customer's request to get money back for a delivered order.
    """

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="refund_request",
    )
    customer = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="refund_requests",
    )
    vendor = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="received_refund_requests",
    )

    amount = MoneyField(max_digits=12, decimal_places=2, default_currency="INR")
    reason = models.TextField()
    reason_category = models.CharField(
        max_length=20,
        choices=RefundReasonCategory.choices,
        default=RefundReasonCategory.OTHER,
    )
    notes = models.TextField(blank=True)
    attachments = models.JSONField(default=list, blank=True)

    status = models.CharField(
        max_length=20,
        choices=RefundRequestStatus.choices,
        default=RefundRequestStatus.PENDING,
        db_index=True,
    )
    processed_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_refund_requests",
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    admin_notes = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)

    objects = RoleScopedQuerySet.as_manager()

    class Meta:
        db_table = "refunds_refund_request"
        ordering: ClassVar[list[str]] = ["-created_at"]

    def __str__(self) -> str:
        return f"Refund request {self.pk} ({self.status})"


class Refund(AuditStampedModelBase):
    """
    Gateway settlement of an accepted refund request.
    """

    refund_request = models.OneToOneField(
        RefundRequest,
        on_delete=models.PROTECT,
        related_name="refund",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    customer = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    vendor = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="vendor_refunds",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="refunds",
    )

    amount = MoneyField(max_digits=12, decimal_places=2, default_currency="INR")
    reason = models.TextField()
    gateway_payment_id = models.CharField(max_length=100)
    gateway_refund_id = models.CharField(max_length=100, blank=True)

    status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.INITIATED,
        db_index=True,
    )
    refund_method = models.CharField(
        max_length=20,
        choices=RefundMethod.choices,
        default=RefundMethod.ORIGINAL_PAYMENT,
    )
    notes = models.TextField(blank=True)
    processed_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_refunds",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)

    objects = RoleScopedQuerySet.as_manager()

    # initiated and processing may still settle; completed is final
    ALLOWED_TRANSITIONS: ClassVar[dict] = {
        RefundStatus.INITIATED: [
            RefundStatus.PROCESSING,
            RefundStatus.COMPLETED,
            RefundStatus.FAILED,
        ],
        RefundStatus.PROCESSING: [RefundStatus.COMPLETED, RefundStatus.FAILED],
        RefundStatus.FAILED: [RefundStatus.INITIATED],
        RefundStatus.COMPLETED: [],
    }

    class Meta:
        db_table = "refunds_refund"
        ordering: ClassVar[list[str]] = ["-created_at"]
        indexes: ClassVar[list] = [
            models.Index(fields=["customer", "status"], name="refund_customer_status_idx"),
            models.Index(fields=["vendor", "status"], name="refund_vendor_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Refund {self.pk} ({self.status})"

    def can_transition(self, new_status: str) -> bool:
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, [])

    def set_status(self, status: str, extra_fields: list[str] | None = None) -> None:
        previous = self.status
        self.status = status
        fields = ["status", "updated_at", *(extra_fields or [])]
        if status == RefundStatus.COMPLETED:
            self.completed_at = timezone.now()
            fields.append("completed_at")
        elif status == RefundStatus.FAILED:
            self.failed_at = timezone.now()
            fields.append("failed_at")
        self.save(update_fields=fields)
        logger.info(
            "refund_status_changed",
            refund_id=str(self.pk),
            order_id=str(self.order_id),
            from_status=previous,
            to_status=status,
        )

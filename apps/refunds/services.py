# apps/refunds/services.py

"""
Refund workflow: customers request, the vendor or an admin decides, and the
customer settles an accepted request against the original payment.
"""

from decimal import Decimal

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.accounts.models import Role
from apps.core.exceptions import (AlreadyProcessed, Duplicate, Forbidden,
                                  GatewayFailure, InvalidTransition, NotFound,
                                  ServiceError, Unauthorized, ValidationFailed)
from apps.core.utils import (create_money_from_price, quantize_amount,
                             to_minor_units)
from apps.orders.enums import OrderStatus
from apps.orders.models import Order
from apps.payments.gateway import GatewayError, get_gateway_client
from apps.payments.models import Payment
from apps.refunds.enums import (RefundMethod, RefundReasonCategory,
                                RefundRequestStatus, RefundStatus)
from apps.refunds.models import Refund, RefundRequest

logger = structlog.get_logger(__name__)

GATEWAY_PROCESSED = "processed"
BULK_TARGET_STATUSES = (
    RefundStatus.PROCESSING,
    RefundStatus.COMPLETED,
    RefundStatus.FAILED,
)


class RefundService:
    def __init__(self, user, gateway=None):
        if user is None or not user.is_authenticated:
            raise Unauthorized()
        self.user = user
        self.role = user.role
        self._gateway = gateway

    @property
    def gateway(self):
        if self._gateway is None:
            self._gateway = get_gateway_client()
        return self._gateway

    def require_role(self, *roles, message=None):
        if self.role not in roles:
            raise Forbidden(message)

    # Refund requests

    def scoped_requests(self):
        return RefundRequest.objects.visible_to(self.user)

    def get_request(self, request_id) -> RefundRequest:
        refund_request = self.scoped_requests().filter(pk=request_id).first()
        if refund_request is None:
            raise NotFound("Refund request not found")
        return refund_request

    def _decidable_request(self, request_id) -> RefundRequest:
        """Admins decide every request, vendors only those on their orders."""
        self.require_role(
            Role.VENDOR,
            Role.ADMIN,
            message="Only the vendor or an administrator can process refund requests.",
        )
        return self.get_request(request_id)

    def request(
        self,
        order_id,
        reason: str,
        amount: Decimal | None = None,
        reason_category: str = RefundReasonCategory.OTHER,
        notes: str = "",
        attachments: list | None = None,
    ) -> RefundRequest:
        self.require_role(Role.CUSTOMER, message="Only customers can request refunds.")

        order = Order.objects.filter(pk=order_id, customer=self.user).first()
        if order is None:
            raise NotFound("Order not found")
        if order.status != OrderStatus.DELIVERED:
            raise InvalidTransition(
                "Refunds can only be requested for delivered orders",
                details={"current_status": order.status},
            )
        if RefundRequest.objects.filter(order=order).exists():
            raise Duplicate("A refund request already exists for this order")

        order_total = order.total_amount.amount
        amount = order_total if amount is None else quantize_amount(Decimal(amount))
        if amount <= 0 or amount > order_total:
            raise ValidationFailed(
                "Refund amount must be positive and not exceed the order total",
                details={"amount": str(amount), "order_total": str(order_total)},
            )

        try:
            with transaction.atomic():
                refund_request = RefundRequest.objects.create(
                    order=order,
                    customer=self.user,
                    vendor=order.vendor,
                    amount=create_money_from_price(
                        amount, str(order.total_amount.currency)
                    ),
                    reason=reason,
                    reason_category=reason_category,
                    notes=notes,
                    attachments=attachments or [],
                )
        except IntegrityError as e:
            raise Duplicate("A refund request already exists for this order") from e

        logger.info(
            "refund_requested",
            refund_request_id=str(refund_request.pk),
            order_id=str(order.pk),
            amount=str(amount),
        )
        return refund_request

    def _decide(self, request_id, status: str, **fields) -> RefundRequest:
        refund_request = self._decidable_request(request_id)
        updated = RefundRequest.objects.filter(
            pk=refund_request.pk, status=RefundRequestStatus.PENDING
        ).update(
            status=status,
            processed_by=self.user,
            processed_at=timezone.now(),
            updated_at=timezone.now(),
            **fields,
        )
        if not updated:
            raise AlreadyProcessed(
                "Refund request has already been processed",
                details={"current_status": refund_request.status},
            )
        refund_request.refresh_from_db()
        logger.info(
            "refund_request_decided",
            refund_request_id=str(refund_request.pk),
            status=status,
            processed_by=str(self.user.pk),
        )
        return refund_request

    def approve(self, request_id, admin_notes: str = "") -> RefundRequest:
        return self._decide(
            request_id, RefundRequestStatus.ACCEPTED, admin_notes=admin_notes or ""
        )

    def reject(self, request_id, rejection_reason: str, admin_notes: str = "") -> RefundRequest:
        if not (rejection_reason or "").strip():
            raise ValidationFailed("A rejection reason is required")
        return self._decide(
            request_id,
            RefundRequestStatus.REJECTED,
            rejection_reason=rejection_reason,
            admin_notes=admin_notes or "",
        )

    def update_notes(self, request_id, admin_notes: str) -> RefundRequest:
        refund_request = self._decidable_request(request_id)
        refund_request.admin_notes = admin_notes
        refund_request.save(update_fields=["admin_notes", "updated_at"])
        return refund_request

    def delete_request(self, request_id) -> None:
        self.require_role(Role.ADMIN, message="Only administrators can delete refund requests.")
        refund_request = RefundRequest.objects.filter(pk=request_id).first()
        if refund_request is None:
            raise NotFound("Refund request not found")
        if refund_request.status != RefundRequestStatus.REJECTED:
            raise InvalidTransition("Only rejected refund requests can be deleted")
        refund_request.delete()
        logger.info("refund_request_deleted", refund_request_id=str(request_id))

    # Refunds

    def scoped_refunds(self):
        return Refund.objects.visible_to(self.user)

    def get_refund(self, refund_id) -> Refund:
        refund = self.scoped_refunds().filter(pk=refund_id).first()
        if refund is None:
            raise NotFound("Refund not found")
        return refund

    def _locked_refund(self, refund_id) -> Refund:
        refund = Refund.objects.select_for_update().filter(pk=refund_id).first()
        if refund is None:
            raise NotFound("Refund not found")
        return refund

    def initiate(
        self,
        request_id,
        gateway_payment_id: str,
        refund_method: str = RefundMethod.ORIGINAL_PAYMENT,
    ) -> Refund:
        """
        Create the refund record and ask the gateway to pay it out. A gateway
        failure is stored on the refund before GatewayFailure is raised.
        """
        self.require_role(Role.CUSTOMER, message="Only customers can initiate refunds.")

        refund_request = RefundRequest.objects.filter(
            pk=request_id, customer=self.user
        ).first()
        if refund_request is None:
            raise NotFound("Refund request not found")
        if refund_request.status != RefundRequestStatus.ACCEPTED:
            raise InvalidTransition(
                "Refund request has not been accepted",
                details={"current_status": refund_request.status},
            )

        payment = (
            Payment.objects.completed()
            .filter(
                gateway_payment_id=gateway_payment_id,
                customer=self.user,
                order_id=refund_request.order_id,
            )
            .first()
        )
        if payment is None:
            raise NotFound("Payment not found")

        if Refund.objects.filter(refund_request=refund_request).exists():
            raise Duplicate("Refund has already been initiated for this request")

        try:
            with transaction.atomic():
                refund = Refund.objects.create(
                    refund_request=refund_request,
                    order_id=refund_request.order_id,
                    customer=self.user,
                    vendor_id=refund_request.vendor_id,
                    payment=payment,
                    amount=refund_request.amount,
                    reason=refund_request.reason,
                    gateway_payment_id=gateway_payment_id,
                    refund_method=refund_method,
                )
        except IntegrityError as e:
            raise Duplicate("Refund has already been initiated for this request") from e

        logger.info(
            "refund_initiated",
            refund_id=str(refund.pk),
            refund_request_id=str(refund_request.pk),
            amount=str(refund.amount.amount),
        )
        return self._submit(refund)

    def _submit(self, refund: Refund) -> Refund:
        refund.attempts += 1
        refund.save(update_fields=["attempts", "updated_at"])

        try:
            response = self.gateway.create_refund(
                refund.gateway_payment_id,
                to_minor_units(refund.amount),
                notes={
                    "reason": refund.reason[:255],
                    "request_id": str(refund.refund_request_id),
                },
            )
        except GatewayError as e:
            refund.notes = f"Gateway error: {e.message}"
            refund.set_status(RefundStatus.FAILED, ["notes"])
            logger.error(
                "refund_gateway_failed",
                refund_id=str(refund.pk),
                attempts=refund.attempts,
                gateway_message=e.message,
            )
            raise GatewayFailure(f"Payment gateway error: {e.message}") from e

        refund.gateway_refund_id = response.get("id", "")
        if response.get("status") == GATEWAY_PROCESSED:
            with transaction.atomic():
                refund = self._locked_refund(refund.pk)
                refund.gateway_refund_id = response.get("id", "")
                self._settle(refund, ["gateway_refund_id"])
        else:
            refund.set_status(RefundStatus.PROCESSING, ["gateway_refund_id"])
        return refund

    def _settle(self, refund: Refund, extra_fields=None) -> None:
        """Complete the refund and flag its payment and order as refunded."""
        refund.set_status(RefundStatus.COMPLETED, extra_fields)
        payment = Payment.objects.select_for_update().get(pk=refund.payment_id)
        payment.mark_refunded()
        order = Order.objects.select_for_update().get(pk=refund.order_id)
        order.mark_refunded()
        logger.info(
            "refund_completed",
            refund_id=str(refund.pk),
            payment_id=str(payment.pk),
            order_id=str(order.pk),
        )

    def retry(self, refund_id) -> Refund:
        """Claim a failed refund and submit it to the gateway again."""
        self.require_role(
            Role.CUSTOMER,
            Role.ADMIN,
            message="Only the customer or an administrator can retry refunds.",
        )
        refund = self.get_refund(refund_id)
        claimed = Refund.objects.filter(
            pk=refund.pk, status=RefundStatus.FAILED
        ).update(status=RefundStatus.INITIATED, updated_at=timezone.now())
        if not claimed:
            refund.refresh_from_db(fields=["status"])
            raise InvalidTransition(
                "Only failed refunds can be retried",
                details={"current_status": refund.status},
            )
        refund.refresh_from_db()
        logger.info("refund_retried", refund_id=str(refund.pk), attempts=refund.attempts)
        return self._submit(refund)

    def _move(self, refund: Refund, status: str, notes: str | None = None) -> Refund:
        if not refund.can_transition(status) or status == RefundStatus.INITIATED:
            raise InvalidTransition(
                f"Cannot move refund from {refund.status} to {status}",
                details={"current_status": refund.status, "requested_status": status},
            )
        extra = ["processed_by"]
        refund.processed_by = self.user
        if notes is not None:
            refund.notes = notes
            extra.append("notes")
        if status == RefundStatus.COMPLETED:
            self._settle(refund, extra)
        else:
            refund.set_status(status, extra)
        return refund

    @transaction.atomic
    def complete(self, refund_id, notes: str | None = None) -> Refund:
        self.require_role(Role.ADMIN, message="Only administrators can complete refunds.")
        return self._move(self._locked_refund(refund_id), RefundStatus.COMPLETED, notes)

    @transaction.atomic
    def fail(self, refund_id, notes: str | None = None) -> Refund:
        self.require_role(Role.ADMIN, message="Only administrators can fail refunds.")
        return self._move(self._locked_refund(refund_id), RefundStatus.FAILED, notes)

    def bulk_status(self, refund_ids, status: str, notes: str | None = None) -> dict:
        """Apply one target status to many refunds; failures are reported, not raised."""
        self.require_role(Role.ADMIN, message="Only administrators can update refunds.")
        if status not in BULK_TARGET_STATUSES:
            raise ValidationFailed(
                "Unsupported target status",
                details={"status": status, "allowed": list(BULK_TARGET_STATUSES)},
            )

        updated, skipped = [], []
        for refund_id in dict.fromkeys(refund_ids):
            try:
                with transaction.atomic():
                    self._move(self._locked_refund(refund_id), status, notes)
            except ServiceError as e:
                skipped.append({"id": str(refund_id), "code": e.code, "error": e.message})
                continue
            updated.append(str(refund_id))

        logger.info(
            "refunds_bulk_updated",
            status=status,
            updated=len(updated),
            skipped=len(skipped),
            admin_id=str(self.user.pk),
        )
        return {"updated": updated, "skipped": skipped}

    @transaction.atomic
    def delete(self, refund_id) -> None:
        self.require_role(Role.ADMIN, message="Only administrators can delete refunds.")
        refund = self._locked_refund(refund_id)
        if refund.status != RefundStatus.FAILED:
            raise InvalidTransition("Only failed refunds can be deleted")
        refund.delete()
        logger.info("refund_deleted", refund_id=str(refund_id), admin_id=str(self.user.pk))

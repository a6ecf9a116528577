# apps/payments/services.py

"""
Payment coordinator: checkout against the gateway, callback verification and
reconciliation of attempts whose callback never arrived.

The local Payment row is written before any gateway call, so a crash or a
gateway failure leaves it pending or failed, never silently successful.
"""

import time
from datetime import timedelta
from decimal import Decimal

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import ProtectedError
from django.utils import timezone

from apps.accounts.models import Role
from apps.core.exceptions import (Duplicate, Forbidden, GatewayFailure,
                                  InvalidTransition, NotFound,
                                  SignatureInvalid, Unauthorized,
                                  ValidationFailed)
from apps.core.utils import (create_money_from_price, percentage_of,
                             quantize_amount, to_minor_units)
from apps.orders.enums import OrderStatus, PaymentStatus
from apps.orders.models import Order
from apps.payments.enums import PaymentMethod, TransactionStatus
from apps.payments.gateway import GatewayError, get_gateway_client
from apps.payments.models import Payment

logger = structlog.get_logger(__name__)

GATEWAY_CAPTURED_STATES = ("captured",)
GATEWAY_FAILED_STATES = ("failed",)


def calculate_charges(amount: Decimal, method: str) -> dict[str, Decimal]:
    """Convenience fee by method plus tax on the base amount."""
    rates = getattr(settings, "PAYMENT_CONVENIENCE_FEE_RATES", {})
    if method not in rates:
        raise ValidationFailed(
            "Unsupported payment method",
            details={"method": method, "allowed": sorted(rates)},
        )
    amount = quantize_amount(amount)
    convenience_fee = percentage_of(amount, rates[method])
    tax = percentage_of(amount, getattr(settings, "PAYMENT_TAX_RATE", Decimal("0.18")))
    return {
        "amount": amount,
        "convenience_fee": convenience_fee,
        "tax": tax,
        "total_amount": quantize_amount(amount + convenience_fee + tax),
    }


def complete_payment(payment_id, gateway_payment_id: str, signature: str = "") -> Payment:
    """
    Mark a payment completed and its order paid, under row locks.

    Raises Duplicate when another payment of the same order already completed.
    """
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        order = Order.objects.select_for_update().get(pk=payment.order_id)

        if payment.status == TransactionStatus.COMPLETED:
            if payment.gateway_payment_id == gateway_payment_id:
                return payment
            raise Duplicate("Payment already completed with a different payment id")
        if payment.status == TransactionStatus.REFUNDED:
            raise InvalidTransition("Payment has already been refunded")

        if (
            Payment.objects.settled()
            .filter(order_id=order.pk)
            .exclude(pk=payment.pk)
            .exists()
        ):
            raise Duplicate(
                "Order already has a successful payment",
                details={"order_id": str(order.pk)},
            )

        try:
            with transaction.atomic():
                payment.mark_completed(gateway_payment_id, signature)
        except IntegrityError as e:
            raise Duplicate("Order already has a successful payment") from e

        if order.status == OrderStatus.CANCELLED:
            logger.warning(
                "payment_completed_for_cancelled_order",
                order_id=str(order.pk),
                payment_id=str(payment.pk),
            )
        order.mark_paid()

    logger.info(
        "payment_verified",
        payment_id=str(payment.pk),
        order_id=str(payment.order_id),
        gateway_payment_id=gateway_payment_id,
    )
    return payment


class PaymentService:
    """
    Payment operations on behalf of one principal. The gateway client is
    injected; views pass the one built at startup.
    """

    def __init__(self, user, gateway=None):
        if user is None or not user.is_authenticated:
            raise Unauthorized()
        self.user = user
        self.role = user.role
        self.gateway = gateway or get_gateway_client()

    def require_role(self, *roles, message=None):
        if self.role not in roles:
            raise Forbidden(message)

    def _own_payment_by_gateway_order(self, gateway_order_id) -> Payment:
        payment = Payment.objects.filter(
            customer=self.user, gateway_order_id=gateway_order_id
        ).first()
        if payment is None:
            raise NotFound("Payment not found")
        return payment

    def initiate(self, order_id, method: str, amount: Decimal | None = None) -> dict:
        """
        Create a pending payment and the matching gateway order.

        Returns the checkout payload for the client. The key secret is never
        part of it.
        """
        self.require_role(Role.CUSTOMER, message="Only customers can pay for orders.")

        order = Order.objects.filter(pk=order_id, customer=self.user).first()
        if order is None:
            raise NotFound("Order not found")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidTransition("Cannot pay for a cancelled order")
        if (
            order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED)
            or Payment.objects.settled().filter(order=order).exists()
        ):
            raise Duplicate(
                "Order has already been paid",
                details={"order_id": str(order.pk), "payment_status": order.payment_status},
            )

        if amount is None:
            amount = order.total_amount.amount
        if Decimal(amount) <= 0:
            raise ValidationFailed("Payment amount must be positive")
        if Decimal(amount) != order.total_amount.amount:
            logger.warning(
                "payment_amount_differs_from_order_total",
                order_id=str(order.pk),
                amount=str(amount),
                order_total=str(order.total_amount.amount),
            )

        charges = calculate_charges(Decimal(amount), method)
        currency = str(order.total_amount.currency)

        payment = Payment.objects.create(
            order=order,
            customer=self.user,
            method=method,
            currency=currency,
            receipt=f"order_{order.pk}_{int(time.time() * 1000)}",
            **{
                field: create_money_from_price(value, currency)
                for field, value in charges.items()
            },
        )

        try:
            gateway_order = self.gateway.create_order(
                amount_minor=to_minor_units(charges["total_amount"]),
                currency=currency,
                receipt=payment.receipt,
                notes={"order_number": order.order_number, "payment_id": str(payment.pk)},
            )
        except GatewayError as e:
            payment.mark_failed(f"Gateway error: {e.message}")
            logger.error(
                "payment_initiation_failed",
                payment_id=str(payment.pk),
                order_id=str(order.pk),
                gateway_message=e.message,
            )
            raise GatewayFailure(f"Payment gateway error: {e.message}") from e

        payment.gateway_order_id = gateway_order["id"]
        payment.save(update_fields=["gateway_order_id", "updated_at"])

        logger.info(
            "payment_initiated",
            payment_id=str(payment.pk),
            order_id=str(order.pk),
            gateway_order_id=payment.gateway_order_id,
            method=method,
            total_amount=str(charges["total_amount"]),
        )

        return {
            "key_id": self.gateway.key_id,
            "gateway_order_id": payment.gateway_order_id,
            "amount": to_minor_units(charges["total_amount"]),
            "currency": currency,
            "name": self.gateway.merchant_name,
            "description": f"Payment for order {order.order_number}",
            "prefill": {
                "name": self.user.full_name or self.user.email,
                "email": self.user.email,
                "contact": self.user.phone_number or order.shipping_phone,
            },
            "payment_id": str(payment.pk),
            "breakdown": {key: str(value) for key, value in charges.items()},
        }

    def verify(self, gateway_order_id, gateway_payment_id, signature) -> Payment:
        self.require_role(Role.CUSTOMER, message="Only customers can verify payments.")
        payment = self._own_payment_by_gateway_order(gateway_order_id)

        if not self.gateway.verify_payment_signature(
            gateway_order_id, gateway_payment_id, signature
        ):
            logger.warning(
                "payment_signature_mismatch",
                payment_id=str(payment.pk),
                gateway_order_id=gateway_order_id,
                user_id=str(self.user.pk),
            )
            raise SignatureInvalid()

        return complete_payment(payment.pk, gateway_payment_id, signature)

    @transaction.atomic
    def fail(self, gateway_order_id, reason: str = "", gateway_payment_id=None) -> Payment:
        """Record a failed attempt; the order stays payable."""
        self.require_role(Role.CUSTOMER, message="Only customers can report payments.")
        payment = self._own_payment_by_gateway_order(gateway_order_id)
        payment = Payment.objects.select_for_update().get(pk=payment.pk)

        if payment.status == TransactionStatus.FAILED:
            return payment
        if payment.status != TransactionStatus.PENDING:
            raise InvalidTransition(
                f"Cannot fail a {payment.status} payment",
                details={"current_status": payment.status},
            )

        if gateway_payment_id and not payment.gateway_payment_id:
            payment.gateway_payment_id = gateway_payment_id
            payment.save(update_fields=["gateway_payment_id", "updated_at"])
        payment.mark_failed(reason or "Payment failed")
        logger.info(
            "payment_failed",
            payment_id=str(payment.pk),
            order_id=str(payment.order_id),
            reason=payment.failure_reason,
        )
        return payment

    @transaction.atomic
    def admin_update(self, payment_id, status: str, admin_notes: str | None = None) -> Payment:
        self.require_role(Role.ADMIN, message="Only administrators can update payments.")
        payment = Payment.objects.select_for_update().filter(pk=payment_id).first()
        if payment is None:
            raise NotFound("Payment not found")

        extra = []
        if admin_notes is not None:
            payment.admin_notes = admin_notes
            extra.append("admin_notes")
        try:
            with transaction.atomic():
                payment.set_status(status, extra)
        except IntegrityError as e:
            raise Duplicate("Order already has a successful payment") from e

        logger.info(
            "payment_admin_updated",
            payment_id=str(payment.pk),
            status=status,
            admin_id=str(self.user.pk),
        )
        return payment

    @transaction.atomic
    def delete(self, payment_id) -> None:
        self.require_role(Role.ADMIN, message="Only administrators can delete payments.")
        payment = Payment.objects.select_for_update().filter(pk=payment_id).first()
        if payment is None:
            raise NotFound("Payment not found")
        if payment.status == TransactionStatus.COMPLETED:
            raise InvalidTransition("Completed payments cannot be deleted")
        try:
            payment.delete()
        except ProtectedError as e:
            raise InvalidTransition("Payment has refunds and cannot be deleted") from e
        logger.info("payment_deleted", payment_id=str(payment_id), admin_id=str(self.user.pk))


def reconcile_pending_payments(gateway=None, older_than_minutes=None, dry_run=False) -> dict:
    """
    Ask the gateway about pending payments whose callback never arrived.
    Gateway errors are logged and the payment is left for the next run.
    """
    gateway = gateway or get_gateway_client()
    if older_than_minutes is None:
        older_than_minutes = getattr(settings, "PAYMENT_RECONCILE_AFTER_MINUTES", 30)
    cutoff = timezone.now() - timedelta(minutes=older_than_minutes)

    summary = {"completed": [], "failed": [], "pending": [], "errors": []}

    for payment in Payment.objects.stale_pending(cutoff).order_by("created_at"):
        try:
            attempts = gateway.fetch_order_payments(payment.gateway_order_id)
        except GatewayError as e:
            logger.error(
                "payment_reconcile_gateway_error",
                payment_id=str(payment.pk),
                gateway_message=e.message,
            )
            summary["errors"].append(str(payment.pk))
            continue

        captured = next(
            (a for a in attempts if a.get("status") in GATEWAY_CAPTURED_STATES), None
        )
        failed = [a for a in attempts if a.get("status") in GATEWAY_FAILED_STATES]

        if captured is not None:
            if not dry_run:
                try:
                    complete_payment(payment.pk, captured["id"])
                except (Duplicate, InvalidTransition) as e:
                    logger.warning(
                        "payment_reconcile_skipped",
                        payment_id=str(payment.pk),
                        reason=e.message,
                    )
                    summary["errors"].append(str(payment.pk))
                    continue
            summary["completed"].append(str(payment.pk))
        elif attempts and len(failed) == len(attempts):
            if not dry_run:
                reason = failed[-1].get("error_description") or "Payment failed at gateway"
                payment.mark_failed(reason)
            summary["failed"].append(str(payment.pk))
        else:
            summary["pending"].append(str(payment.pk))

    logger.info(
        "payments_reconciled",
        dry_run=dry_run,
        **{key: len(value) for key, value in summary.items()},
    )
    return summary


__all__ = [
    "PaymentMethod",
    "PaymentService",
    "calculate_charges",
    "complete_payment",
    "reconcile_pending_payments",
]

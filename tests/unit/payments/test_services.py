# tests/unit/payments/test_services.py

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from apps.core.exceptions import (Duplicate, Forbidden, GatewayFailure,
                                  InvalidTransition, NotFound,
                                  SignatureInvalid, ValidationFailed)
from apps.orders.enums import OrderStatus, PaymentStatus
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.payments.enums import TransactionStatus
from apps.payments.gateway import GatewayError, build_gateway_client
from apps.payments.models import Payment
from apps.payments.services import (PaymentService, calculate_charges,
                                    reconcile_pending_payments)
from apps.refunds.services import RefundService
from tests.unit.helpers import (FakeGateway, delivered_paid_order,
                                make_admin, make_customer,
                                make_pending_payment, make_product,
                                make_vendor, place_order, sign)


class CalculateChargesTests(TestCase):
    def test_card_payment_of_1000(self):
        charges = calculate_charges(Decimal("1000.00"), "card")
        self.assertEqual(charges["convenience_fee"], Decimal("20.00"))
        self.assertEqual(charges["tax"], Decimal("180.00"))
        self.assertEqual(charges["total_amount"], Decimal("1200.00"))

    def test_upi_has_no_fee(self):
        charges = calculate_charges(Decimal("1000.00"), "upi")
        self.assertEqual(charges["convenience_fee"], Decimal("0.00"))
        self.assertEqual(charges["total_amount"], Decimal("1180.00"))

    def test_unknown_method_rejected(self):
        with self.assertRaises(ValidationFailed):
            calculate_charges(Decimal("10.00"), "cheque")


class PaymentFlowTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.product = make_product(self.vendor, price="1000.00", stock=10)
        self.order = place_order(self.customer, self.product, quantity=1)
        self.gateway = FakeGateway()
        self.service = PaymentService(self.customer, gateway=self.gateway)

    def _initiate(self, amount=Decimal("1000.00"), method="card"):
        return self.service.initiate(self.order.pk, method, amount=amount)

    def test_initiate_creates_pending_payment_and_checkout(self):
        checkout = self._initiate()

        payment = Payment.objects.get(pk=checkout["payment_id"])
        self.assertEqual(payment.status, TransactionStatus.PENDING)
        self.assertEqual(payment.total_amount.amount, Decimal("1200.00"))
        self.assertEqual(payment.gateway_order_id, checkout["gateway_order_id"])
        self.assertTrue(payment.receipt.startswith(f"order_{self.order.pk}_"))

        self.assertEqual(checkout["amount"], 120000)
        self.assertEqual(checkout["key_id"], "rzp_test_key")
        self.assertEqual(checkout["breakdown"]["tax"], "180.00")
        self.assertEqual(checkout["prefill"]["email"], self.customer.email)
        self.assertNotIn("key_secret", checkout)

        call = self.gateway.calls[0]
        self.assertEqual(call[:3], ("create_order", 120000, "INR"))

    def test_amount_defaults_to_order_total(self):
        checkout = self.service.initiate(self.order.pk, "upi")
        payment = Payment.objects.get(pk=checkout["payment_id"])
        self.assertEqual(payment.amount.amount, self.order.total_amount.amount)

    def test_amount_other_than_order_total_is_logged(self):
        with patch("apps.payments.services.logger") as log:
            self.service.initiate(self.order.pk, "upi")
            log.warning.assert_not_called()

            self._initiate(amount=self.order.total_amount.amount - 1)

        log.warning.assert_called_once()
        self.assertEqual(
            log.warning.call_args.args[0], "payment_amount_differs_from_order_total"
        )

    def test_gateway_failure_marks_payment_failed(self):
        self.gateway.fail_with = GatewayError("Authentication failed", status_code=401)

        with self.assertRaises(GatewayFailure):
            self._initiate()

        payment = Payment.objects.get(order=self.order)
        self.assertEqual(payment.status, TransactionStatus.FAILED)
        self.assertEqual(payment.failure_reason, "Gateway error: Authentication failed")
        self.assertIsNotNone(payment.failed_at)

    def test_cannot_pay_for_someone_elses_order(self):
        with self.assertRaises(NotFound):
            PaymentService(make_customer(), gateway=self.gateway).initiate(self.order.pk, "card")

    def test_cannot_pay_cancelled_order(self):
        OrderService(self.customer).cancel(self.order.pk)
        with self.assertRaises(InvalidTransition):
            self._initiate()

    def test_vendor_cannot_initiate(self):
        with self.assertRaises(Forbidden):
            PaymentService(self.vendor, gateway=self.gateway).initiate(self.order.pk, "card")

    def test_verify_confirms_order(self):
        checkout = self._initiate()
        gateway_order_id = checkout["gateway_order_id"]

        payment = self.service.verify(
            gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001")
        )

        self.assertEqual(payment.status, TransactionStatus.COMPLETED)
        self.assertEqual(payment.gateway_payment_id, "pay_001")
        self.assertIsNotNone(payment.paid_at)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)
        self.assertIsNotNone(self.order.confirmed_at)

    def test_verify_replay_is_idempotent(self):
        checkout = self._initiate()
        gateway_order_id = checkout["gateway_order_id"]
        signature = sign(gateway_order_id, "pay_001")
        first = self.service.verify(gateway_order_id, "pay_001", signature)

        again = self.service.verify(gateway_order_id, "pay_001", signature)

        self.assertEqual(again.pk, first.pk)
        self.assertEqual(again.paid_at, first.paid_at)

    def test_verify_with_other_payment_id_is_duplicate(self):
        checkout = self._initiate()
        gateway_order_id = checkout["gateway_order_id"]
        self.service.verify(gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001"))

        with self.assertRaises(Duplicate):
            self.service.verify(
                gateway_order_id, "pay_002", sign(gateway_order_id, "pay_002")
            )

    def test_bad_signature_changes_nothing(self):
        checkout = self._initiate()

        with self.assertRaises(SignatureInvalid):
            self.service.verify(checkout["gateway_order_id"], "pay_001", "deadbeef")

        payment = Payment.objects.get(pk=checkout["payment_id"])
        self.assertEqual(payment.status, TransactionStatus.PENDING)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)

    def test_malformed_signature_is_rejected_by_real_client(self):
        checkout = self._initiate()
        service = PaymentService(self.customer, gateway=build_gateway_client())

        for signature in ("é" * 64, "not-hex-" * 8):
            with self.subTest(signature=signature):
                with self.assertRaises(SignatureInvalid):
                    service.verify(checkout["gateway_order_id"], "pay_001", signature)

        payment = Payment.objects.get(pk=checkout["payment_id"])
        self.assertEqual(payment.status, TransactionStatus.PENDING)

    def test_second_successful_payment_is_duplicate(self):
        first = self._initiate()
        second = self._initiate()
        self.service.verify(
            first["gateway_order_id"], "pay_001", sign(first["gateway_order_id"], "pay_001")
        )

        with self.assertRaises(Duplicate):
            self.service.verify(
                second["gateway_order_id"],
                "pay_002",
                sign(second["gateway_order_id"], "pay_002"),
            )
        with self.assertRaises(Duplicate):
            self._initiate()

    def test_fail_keeps_order_payable(self):
        checkout = self._initiate()

        payment = self.service.fail(checkout["gateway_order_id"], reason="Card declined")

        self.assertEqual(payment.status, TransactionStatus.FAILED)
        self.assertEqual(payment.failure_reason, "Card declined")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PENDING)
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)

        # a failed attempt can still be settled by a genuine callback
        gateway_order_id = checkout["gateway_order_id"]
        self.service.verify(gateway_order_id, "pay_009", sign(gateway_order_id, "pay_009"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)

    def test_failing_completed_payment_is_invalid(self):
        checkout = self._initiate()
        gateway_order_id = checkout["gateway_order_id"]
        self.service.verify(gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001"))

        with self.assertRaises(InvalidTransition):
            self.service.fail(gateway_order_id, reason="late")


class SettledOrderTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.order, self.payment = delivered_paid_order(self.customer, self.vendor)
        self.gateway = FakeGateway(refund_status="processed")
        self.service = PaymentService(self.customer, gateway=self.gateway)

    def test_refunded_order_cannot_be_paid_again(self):
        refund_request = RefundService(self.customer).request(self.order.pk, "Arrived broken")
        RefundService(self.vendor).approve(refund_request.pk)
        RefundService(self.customer, gateway=self.gateway).initiate(refund_request.pk, "pay_1")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.REFUNDED)
        calls_before = list(self.gateway.calls)

        with self.assertRaises(Duplicate):
            self.service.initiate(self.order.pk, "card")

        self.assertEqual(self.gateway.calls, calls_before)
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

    def test_paid_flag_alone_blocks_payment(self):
        order = place_order(self.customer, make_product(self.vendor))
        Order.objects.filter(pk=order.pk).update(payment_status=PaymentStatus.PAID)

        with self.assertRaises(Duplicate):
            self.service.initiate(order.pk, "upi")
        self.assertEqual(self.gateway.calls, [])


class PaymentAdminTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.admin = make_admin()
        self.order = place_order(self.customer, make_product(make_vendor()))
        self.payment = make_pending_payment(self.order)
        self.service = PaymentService(self.admin, gateway=FakeGateway())

    def test_admin_update_sets_status_and_notes(self):
        payment = self.service.admin_update(
            self.payment.pk, TransactionStatus.FAILED, "Customer called"
        )
        self.assertEqual(payment.status, TransactionStatus.FAILED)
        self.assertEqual(payment.admin_notes, "Customer called")
        self.assertIsNotNone(payment.failed_at)

    def test_customer_cannot_admin_update(self):
        with self.assertRaises(Forbidden):
            PaymentService(self.customer, gateway=FakeGateway()).admin_update(
                self.payment.pk, TransactionStatus.FAILED
            )

    def test_completed_payment_cannot_be_deleted(self):
        self.service.admin_update(self.payment.pk, TransactionStatus.COMPLETED)
        with self.assertRaises(InvalidTransition):
            self.service.delete(self.payment.pk)

    def test_delete_pending_payment(self):
        self.service.delete(self.payment.pk)
        self.assertFalse(Payment.objects.filter(pk=self.payment.pk).exists())


class ReconcilePendingPaymentsTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product(make_vendor(), price="1000.00", stock=10)

    def _stale_payment(self, gateway_order_id):
        order = place_order(self.customer, self.product)
        payment = make_pending_payment(order, gateway_order_id=gateway_order_id)
        Payment.objects.filter(pk=payment.pk).update(
            created_at=timezone.now() - timedelta(hours=2)
        )
        return payment

    def test_settles_from_gateway_state(self):
        captured = self._stale_payment("order_A")
        failed = self._stale_payment("order_B")
        waiting = self._stale_payment("order_C")
        gateway = FakeGateway(
            attempts={
                "order_A": [
                    {"id": "pay_A0", "status": "failed"},
                    {"id": "pay_A1", "status": "captured"},
                ],
                "order_B": [
                    {"id": "pay_B1", "status": "failed", "error_description": "Declined"}
                ],
            }
        )

        summary = reconcile_pending_payments(gateway=gateway, older_than_minutes=30)

        self.assertEqual(summary["completed"], [str(captured.pk)])
        self.assertEqual(summary["failed"], [str(failed.pk)])
        self.assertEqual(summary["pending"], [str(waiting.pk)])

        captured.refresh_from_db()
        self.assertEqual(captured.status, TransactionStatus.COMPLETED)
        self.assertEqual(captured.gateway_payment_id, "pay_A1")
        captured.order.refresh_from_db()
        self.assertEqual(captured.order.status, OrderStatus.CONFIRMED)

        failed.refresh_from_db()
        self.assertEqual(failed.status, TransactionStatus.FAILED)
        self.assertEqual(failed.failure_reason, "Declined")

    def test_gateway_errors_are_skipped(self):
        payment = self._stale_payment("order_X")
        gateway = FakeGateway()
        gateway.fail_with = GatewayError("Service unavailable", status_code=503)

        summary = reconcile_pending_payments(gateway=gateway, older_than_minutes=30)

        self.assertEqual(summary["errors"], [str(payment.pk)])
        payment.refresh_from_db()
        self.assertEqual(payment.status, TransactionStatus.PENDING)

    def test_recent_payments_are_not_checked(self):
        order = place_order(self.customer, self.product)
        make_pending_payment(order, gateway_order_id="order_new")
        gateway = FakeGateway()

        reconcile_pending_payments(gateway=gateway, older_than_minutes=30)

        self.assertEqual(gateway.calls, [])

    def test_dry_run_does_not_write(self):
        payment = self._stale_payment("order_D")
        gateway = FakeGateway(attempts={"order_D": [{"id": "pay_D1", "status": "captured"}]})

        summary = reconcile_pending_payments(
            gateway=gateway, older_than_minutes=30, dry_run=True
        )

        self.assertEqual(summary["completed"], [str(payment.pk)])
        payment.refresh_from_db()
        self.assertEqual(payment.status, TransactionStatus.PENDING)

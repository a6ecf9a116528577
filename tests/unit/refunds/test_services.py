# tests/unit/refunds/test_services.py

from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase

from apps.core.exceptions import (AlreadyProcessed, Duplicate, Forbidden,
                                  GatewayFailure, InvalidTransition, NotFound,
                                  ValidationFailed)
from apps.orders.enums import PaymentStatus
from apps.payments.enums import TransactionStatus
from apps.payments.gateway import GatewayError
from apps.refunds.enums import RefundRequestStatus, RefundStatus
from apps.refunds.models import Refund, RefundRequest
from apps.refunds.services import RefundService
from tests.unit.helpers import (FakeGateway, delivered_paid_order, make_admin,
                                make_customer, make_product, make_vendor,
                                place_order)


class RefundRequestTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.admin = make_admin()
        self.order, self.payment = delivered_paid_order(self.customer, self.vendor)
        self.service = RefundService(self.customer)

    def test_request_defaults_to_order_total(self):
        refund_request = self.service.request(
            self.order.pk, "Arrived broken", reason_category="defective"
        )

        self.assertEqual(refund_request.status, RefundRequestStatus.PENDING)
        self.assertEqual(refund_request.amount.amount, self.order.total_amount.amount)
        self.assertEqual(refund_request.vendor_id, self.vendor.pk)

    def test_undelivered_order_cannot_be_refunded(self):
        pending = place_order(self.customer, make_product(self.vendor))
        with self.assertRaises(InvalidTransition):
            self.service.request(pending.pk, "Too slow")

    def test_second_request_is_duplicate(self):
        self.service.request(self.order.pk, "Arrived broken")
        with self.assertRaises(Duplicate):
            self.service.request(self.order.pk, "Still broken")

    def test_amount_must_not_exceed_total(self):
        with self.assertRaises(ValidationFailed):
            self.service.request(
                self.order.pk, "Overcharged", amount=self.order.total_amount.amount + 1
            )
        with self.assertRaises(ValidationFailed):
            self.service.request(self.order.pk, "Overcharged", amount=Decimal("0"))
        self.assertFalse(RefundRequest.objects.exists())

    def test_other_customer_cannot_request(self):
        with self.assertRaises(NotFound):
            RefundService(make_customer()).request(self.order.pk, "Not mine")

    def test_vendor_approves_once(self):
        refund_request = self.service.request(self.order.pk, "Arrived broken")

        approved = RefundService(self.vendor).approve(refund_request.pk, "Sorry!")

        self.assertEqual(approved.status, RefundRequestStatus.ACCEPTED)
        self.assertEqual(approved.processed_by, self.vendor)
        self.assertIsNotNone(approved.processed_at)
        self.assertEqual(approved.admin_notes, "Sorry!")

        with self.assertRaises(AlreadyProcessed):
            RefundService(self.admin).reject(refund_request.pk, "Too late")

    def test_reject_requires_reason(self):
        refund_request = self.service.request(self.order.pk, "Arrived broken")
        with self.assertRaises(ValidationFailed):
            RefundService(self.admin).reject(refund_request.pk, "  ")

        rejected = RefundService(self.admin).reject(refund_request.pk, "Item was used")
        self.assertEqual(rejected.status, RefundRequestStatus.REJECTED)
        self.assertEqual(rejected.rejection_reason, "Item was used")

    def test_other_vendor_and_customer_cannot_decide(self):
        refund_request = self.service.request(self.order.pk, "Arrived broken")
        with self.assertRaises(NotFound):
            RefundService(make_vendor()).approve(refund_request.pk)
        with self.assertRaises(Forbidden):
            self.service.approve(refund_request.pk)

    def test_only_rejected_requests_are_deleted(self):
        refund_request = self.service.request(self.order.pk, "Arrived broken")
        admin = RefundService(self.admin)
        with self.assertRaises(InvalidTransition):
            admin.delete_request(refund_request.pk)

        admin.reject(refund_request.pk, "No")
        admin.delete_request(refund_request.pk)
        self.assertFalse(RefundRequest.objects.exists())


class RefundSettlementTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.admin = make_admin()
        self.order, self.payment = delivered_paid_order(self.customer, self.vendor)
        self.refund_request = RefundService(self.customer).request(
            self.order.pk, "Arrived broken"
        )
        RefundService(self.vendor).approve(self.refund_request.pk)
        self.gateway = FakeGateway()
        self.service = RefundService(self.customer, gateway=self.gateway)

    def _initiate(self):
        return self.service.initiate(self.refund_request.pk, "pay_1")

    def test_initiate_submits_to_gateway(self):
        refund = self._initiate()

        self.assertEqual(refund.status, RefundStatus.PROCESSING)
        self.assertEqual(refund.attempts, 1)
        self.assertTrue(refund.gateway_refund_id.startswith("rfnd_"))
        self.assertEqual(refund.payment_id, self.payment.pk)

        name, payment_id, amount_minor, notes = self.gateway.calls[0]
        self.assertEqual((name, payment_id), ("create_refund", "pay_1"))
        self.assertEqual(amount_minor, int(self.order.total_amount.amount * 100))
        self.assertEqual(notes["request_id"], str(self.refund_request.pk))

    def test_second_initiate_is_duplicate(self):
        self._initiate()
        with self.assertRaises(Duplicate):
            self._initiate()
        self.assertEqual(Refund.objects.count(), 1)

    def test_pending_request_cannot_be_initiated(self):
        other_order, _ = delivered_paid_order(
            self.customer, self.vendor, gateway_payment_id="pay_2"
        )
        pending = RefundService(self.customer).request(other_order.pk, "Wrong size")
        with self.assertRaises(InvalidTransition):
            self.service.initiate(pending.pk, "pay_2")

    def test_unknown_payment_is_not_found(self):
        with self.assertRaises(NotFound):
            self.service.initiate(self.refund_request.pk, "pay_nope")

    def test_processed_refund_settles_payment_and_order(self):
        self.gateway.refund_status = "processed"

        refund = self._initiate()

        self.assertEqual(refund.status, RefundStatus.COMPLETED)
        self.assertIsNotNone(refund.completed_at)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, TransactionStatus.REFUNDED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.REFUNDED)

    def test_gateway_failure_then_retry(self):
        self.gateway.fail_with = GatewayError("Insufficient balance", status_code=400)

        with self.assertRaises(GatewayFailure):
            self._initiate()

        refund = Refund.objects.get()
        self.assertEqual(refund.status, RefundStatus.FAILED)
        self.assertEqual(refund.notes, "Gateway error: Insufficient balance")
        self.assertEqual(refund.attempts, 1)

        self.gateway.fail_with = None
        retried = self.service.retry(refund.pk)

        self.assertEqual(retried.status, RefundStatus.PROCESSING)
        self.assertEqual(retried.attempts, 2)

    def test_retry_only_from_failed(self):
        refund = self._initiate()
        with self.assertRaises(InvalidTransition):
            self.service.retry(refund.pk)

    def test_retry_already_claimed_is_not_resubmitted(self):
        self.gateway.fail_with = GatewayError("Request timed out")
        with self.assertRaises(GatewayFailure):
            self._initiate()
        self.gateway.fail_with = None
        stale = Refund.objects.get()
        self.assertEqual(stale.status, RefundStatus.FAILED)
        # another retry claims the row after this one has read it
        Refund.objects.filter(pk=stale.pk).update(status=RefundStatus.INITIATED)
        calls_before = list(self.gateway.calls)

        with patch.object(RefundService, "get_refund", return_value=stale):
            with self.assertRaises(InvalidTransition) as ctx:
                self.service.retry(stale.pk)

        self.assertEqual(ctx.exception.details["current_status"], RefundStatus.INITIATED)
        self.assertEqual(self.gateway.calls, calls_before)
        self.assertEqual(Refund.objects.get().attempts, 1)

    def test_admin_completes_processing_refund(self):
        refund = self._initiate()

        completed = RefundService(self.admin).complete(refund.pk, "Settled offline")

        self.assertEqual(completed.status, RefundStatus.COMPLETED)
        self.assertEqual(completed.processed_by, self.admin)
        self.assertEqual(completed.notes, "Settled offline")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.REFUNDED)

        with self.assertRaises(InvalidTransition):
            RefundService(self.admin).fail(refund.pk)

    def test_customer_cannot_complete(self):
        refund = self._initiate()
        with self.assertRaises(Forbidden):
            self.service.complete(refund.pk)

    def test_bulk_status_reports_skips(self):
        processing = self._initiate()
        other_order, _ = delivered_paid_order(
            self.customer, self.vendor, gateway_payment_id="pay_2"
        )
        other_request = RefundService(self.customer).request(other_order.pk, "Wrong size")
        RefundService(self.admin).approve(other_request.pk)
        self.gateway.refund_status = "processed"
        done = self.service.initiate(other_request.pk, "pay_2")

        result = RefundService(self.admin).bulk_status(
            [processing.pk, done.pk], RefundStatus.FAILED, "Bank reversal"
        )

        self.assertEqual(result["updated"], [str(processing.pk)])
        self.assertEqual(len(result["skipped"]), 1)
        self.assertEqual(result["skipped"][0]["id"], str(done.pk))
        self.assertEqual(result["skipped"][0]["code"], "INVALID_TRANSITION")

    def test_bulk_status_rejects_initiated_target(self):
        with self.assertRaises(ValidationFailed):
            RefundService(self.admin).bulk_status([], RefundStatus.INITIATED)

    def test_only_failed_refunds_are_deleted(self):
        refund = self._initiate()
        admin = RefundService(self.admin)
        with self.assertRaises(InvalidTransition):
            admin.delete(refund.pk)

        admin.fail(refund.pk)
        admin.delete(refund.pk)
        self.assertFalse(Refund.objects.exists())

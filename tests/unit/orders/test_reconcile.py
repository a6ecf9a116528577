# tests/unit/orders/test_reconcile.py

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from apps.orders.enums import OrderStatus, PaymentStatus
from apps.orders.models import Order
from apps.orders.services import reconcile_order_stock
from apps.orders.tasks import cancel_unpaid_orders
from apps.products.models import Product
from tests.unit.helpers import (make_customer, make_product, make_vendor,
                                place_order)


class ReconcileOrderStockTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product(make_vendor(), price="1000.00", stock=10)
        self.order = place_order(self.customer, self.product, quantity=2)

    def _interrupt_before_stock(self):
        """Leave the order as if placement stopped before taking stock."""
        Order.objects.filter(pk=self.order.pk).update(
            stock_committed_at=None,
            created_at=timezone.now() - timedelta(hours=1),
        )
        Product.objects.filter(pk=self.product.pk).update(stock_quantity=10)

    def test_commits_stock_for_interrupted_placement(self):
        self._interrupt_before_stock()

        summary = reconcile_order_stock(grace_minutes=15)

        self.assertEqual(summary["committed"], [self.order.order_number])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 8)
        self.order.refresh_from_db()
        self.assertIsNotNone(self.order.stock_committed_at)

    def test_cancels_when_stock_is_gone(self):
        self._interrupt_before_stock()
        Product.objects.filter(pk=self.product.pk).update(stock_quantity=1)

        summary = reconcile_order_stock(grace_minutes=15)

        self.assertEqual(summary["cancelled"], [self.order.order_number])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 1)

    def test_uncancellable_order_is_skipped_and_run_continues(self):
        self._interrupt_before_stock()
        Order.objects.filter(pk=self.order.pk).update(status=OrderStatus.SHIPPED)
        Product.objects.filter(pk=self.product.pk).update(stock_quantity=1)
        other_product = make_product(make_vendor(), price="100.00", stock=5)
        other = place_order(self.customer, other_product, quantity=2)
        Order.objects.filter(pk=other.pk).update(
            stock_committed_at=None, created_at=timezone.now() - timedelta(hours=1)
        )
        Product.objects.filter(pk=other_product.pk).update(stock_quantity=5)

        summary = reconcile_order_stock(grace_minutes=15)

        self.assertEqual(summary["skipped"], [self.order.order_number])
        self.assertEqual(summary["committed"], [other.order_number])
        self.assertEqual(summary["cancelled"], [])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.SHIPPED)
        other_product.refresh_from_db()
        self.assertEqual(other_product.stock_quantity, 3)

    def test_releases_stock_of_cancelled_order_once(self):
        Order.objects.filter(pk=self.order.pk).update(status=OrderStatus.CANCELLED)

        first = reconcile_order_stock()
        second = reconcile_order_stock()

        self.assertEqual(first["released"], [self.order.order_number])
        self.assertEqual(second["released"], [])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

    def test_recent_orders_left_alone(self):
        Order.objects.filter(pk=self.order.pk).update(stock_committed_at=None)

        summary = reconcile_order_stock(grace_minutes=15)

        self.assertEqual(summary["committed"], [])

    def test_dry_run_changes_nothing(self):
        self._interrupt_before_stock()
        out = StringIO()

        call_command("reconcile_stock", "--dry-run", stdout=out)

        self.assertIn(self.order.order_number, out.getvalue())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)


class CancelUnpaidOrdersTaskTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product(make_vendor(), price="200.00", stock=10)

    def test_cancels_only_stale_unpaid_orders(self):
        stale = place_order(self.customer, self.product, quantity=2)
        fresh = place_order(self.customer, self.product, quantity=1)
        paid = place_order(self.customer, self.product, quantity=1)
        old = timezone.now() - timedelta(hours=30)
        Order.objects.filter(pk__in=[stale.pk, paid.pk]).update(created_at=old)
        Order.objects.filter(pk=paid.pk).update(payment_status=PaymentStatus.PAID)

        cancelled = cancel_unpaid_orders.apply(kwargs={"hours": 24}).get()

        self.assertEqual(cancelled, 1)
        stale.refresh_from_db()
        fresh.refresh_from_db()
        paid.refresh_from_db()
        self.assertEqual(stale.status, OrderStatus.CANCELLED)
        self.assertEqual(fresh.status, OrderStatus.PENDING)
        self.assertEqual(paid.status, OrderStatus.PENDING)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 8)

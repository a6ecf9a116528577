# tests/unit/orders/test_services.py

from decimal import Decimal

from django.test import TestCase

from apps.core.exceptions import (Forbidden, InvalidTransition, NotFound,
                                  OutOfStock, ProductUnavailable,
                                  ValidationFailed)
from apps.orders.enums import DiscountType, OrderStatus, PaymentStatus
from apps.orders.models import Cart, Coupon, Order
from apps.orders.services import CartService, OrderService
from apps.orders.utils import OrderStatusManager
from apps.products.models import ProductStatus
from tests.unit.helpers import (SHIPPING_ADDRESS, make_admin, make_customer,
                                make_product, make_vendor, place_order)


class PlaceOrderTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.product = make_product(self.vendor, price="1000.00", stock=10)
        self.service = OrderService(self.customer)

    def test_two_units_priced_and_stock_taken(self):
        order = place_order(self.customer, self.product, quantity=2)

        self.assertEqual(order.subtotal.amount, Decimal("2000.00"))
        self.assertEqual(order.tax_amount.amount, Decimal("360.00"))
        self.assertEqual(order.shipping_fee.amount, Decimal("0.00"))
        self.assertEqual(order.total_amount.amount, Decimal("2360.00"))
        self.assertEqual(order.calculate_total(), order.total_amount.amount)
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertIsNotNone(order.stock_committed_at)
        self.assertTrue(order.order_number.startswith("ORD"))

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 8)

    def test_over_stock_rejected_and_stock_untouched(self):
        with self.assertRaises(OutOfStock) as ctx:
            place_order(self.customer, self.product, quantity=11)

        self.assertEqual(ctx.exception.details["available_quantity"], 10)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)
        self.assertFalse(Order.objects.exists())

    def test_shortfall_on_second_line_rolls_back_first(self):
        scarce = make_product(self.vendor, price="50.00", stock=1)
        with self.assertRaises(OutOfStock):
            self.service.place_orders(
                shipping_address=SHIPPING_ADDRESS,
                items=[
                    {"product_id": self.product.pk, "quantity": 3},
                    {"product_id": scarce.pk, "quantity": 2},
                ],
            )
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)
        self.assertFalse(Order.objects.exists())

    def test_one_order_per_vendor(self):
        other_vendor = make_vendor()
        other_product = make_product(other_vendor, price="100.00", stock=5)

        orders = self.service.place_orders(
            shipping_address=SHIPPING_ADDRESS,
            items=[
                {"product_id": self.product.pk, "quantity": 1},
                {"product_id": other_product.pk, "quantity": 2},
            ],
        )

        self.assertEqual(len(orders), 2)
        self.assertEqual(
            {order.vendor_id for order in orders}, {self.vendor.pk, other_vendor.pk}
        )

    def test_unavailable_product_rejected(self):
        self.product.status = ProductStatus.INACTIVE
        self.product.save()
        with self.assertRaises(ProductUnavailable):
            place_order(self.customer, self.product)

    def test_unknown_product_is_not_found(self):
        with self.assertRaises(NotFound):
            self.service.place_orders(
                shipping_address=SHIPPING_ADDRESS,
                items=[{"product_id": "00000000-0000-0000-0000-000000000000", "quantity": 1}],
            )

    def test_vendor_cannot_place_orders(self):
        with self.assertRaises(Forbidden):
            OrderService(self.vendor).place_orders(
                shipping_address=SHIPPING_ADDRESS,
                items=[{"product_id": self.product.pk, "quantity": 1}],
            )

    def test_places_from_cart_and_clears_it(self):
        CartService(self.customer).add_item(self.product.pk, 2)

        (order,) = self.service.place_orders(shipping_address=SHIPPING_ADDRESS)

        self.assertEqual(order.items.get().quantity, 2)
        self.assertFalse(Cart.objects.get(user=self.customer).items.exists())

    def test_empty_cart_rejected(self):
        with self.assertRaises(ValidationFailed):
            self.service.place_orders(shipping_address=SHIPPING_ADDRESS)

    def test_coupon_discount_and_usage(self):
        coupon = Coupon.objects.create(
            code="SAVE10",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            usage_limit=1,
        )

        (order,) = self.service.place_orders(
            shipping_address=SHIPPING_ADDRESS,
            items=[{"product_id": self.product.pk, "quantity": 2}],
            coupon_code="save10",
        )

        self.assertEqual(order.discount_amount.amount, Decimal("200.00"))
        self.assertEqual(order.total_amount.amount, Decimal("2160.00"))
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)

        with self.assertRaises(ValidationFailed):
            self.service.place_orders(
                shipping_address=SHIPPING_ADDRESS,
                items=[{"product_id": self.product.pk, "quantity": 1}],
                coupon_code="SAVE10",
            )

    def test_unknown_coupon_rejected(self):
        with self.assertRaises(ValidationFailed):
            self.service.place_orders(
                shipping_address=SHIPPING_ADDRESS,
                items=[{"product_id": self.product.pk, "quantity": 1}],
                coupon_code="NOPE1234",
            )
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)


class OrderLifecycleTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.admin = make_admin()
        self.product = make_product(self.vendor, price="1000.00", stock=10)
        self.order = place_order(self.customer, self.product, quantity=2)

    def _mark_paid(self):
        Order.objects.filter(pk=self.order.pk).update(payment_status=PaymentStatus.PAID)

    def test_cancel_restores_stock(self):
        order = OrderService(self.customer).cancel(self.order.pk, reason="Changed my mind")

        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(order.cancellation_reason, "Changed my mind")
        self.assertIsNotNone(order.cancelled_at)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

    def test_customer_cannot_cancel_confirmed_order(self):
        OrderService(self.vendor).confirm(self.order.pk)
        with self.assertRaises(InvalidTransition):
            OrderService(self.customer).cancel(self.order.pk)

    def test_vendor_delivering_pending_order_is_invalid(self):
        with self.assertRaises(InvalidTransition):
            OrderService(self.vendor).deliver(self.order.pk)

    def test_customer_cannot_confirm(self):
        with self.assertRaises(Forbidden):
            OrderService(self.customer).confirm(self.order.pk)

    def test_other_vendor_cannot_see_order(self):
        with self.assertRaises(NotFound):
            OrderService(make_vendor()).confirm(self.order.pk)

    def test_full_fulfilment_path(self):
        self._mark_paid()
        service = OrderService(self.vendor)
        service.confirm(self.order.pk)
        service.process(self.order.pk)
        service.ship(self.order.pk, carrier="BlueDart", tracking_number="BD123")
        order = service.deliver(self.order.pk)

        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertEqual(order.tracking_number, "BD123")
        for stamp in ("confirmed_at", "processing_at", "shipped_at", "delivered_at"):
            self.assertIsNotNone(getattr(order, stamp), stamp)

    def test_unpaid_order_cannot_be_delivered(self):
        service = OrderService(self.vendor)
        service.confirm(self.order.pk)
        service.process(self.order.pk)
        service.ship(self.order.pk)
        with self.assertRaises(InvalidTransition):
            service.deliver(self.order.pk)

    def test_tracking_update_requires_shipped(self):
        with self.assertRaises(InvalidTransition):
            OrderService(self.vendor).update_tracking(self.order.pk, tracking_number="X1")

    def test_address_update_only_while_pending(self):
        order = OrderService(self.customer).update_address(
            self.order.pk, {"city": "Mysuru"}, None
        )
        self.assertEqual(order.shipping_city, "Mysuru")

        OrderService(self.admin).confirm(self.order.pk)
        with self.assertRaises(InvalidTransition):
            OrderService(self.customer).update_address(self.order.pk, {"city": "Hubli"}, None)

    def test_admin_deletes_only_cancelled_orders(self):
        with self.assertRaises(InvalidTransition):
            OrderService(self.admin).delete(self.order.pk)

        OrderService(self.admin).cancel(self.order.pk)
        OrderService(self.admin).delete(self.order.pk)
        self.assertFalse(Order.objects.filter(pk=self.order.pk).exists())

    def test_reorder_places_same_items(self):
        (new_order,) = OrderService(self.customer).reorder(self.order.pk)

        self.assertNotEqual(new_order.pk, self.order.pk)
        self.assertEqual(new_order.items.get().quantity, 2)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 6)


class OrderStateMachineTests(TestCase):
    """Every (status, action) pair through the service, for each role."""

    ACTIONS = {
        "confirm": OrderStatus.CONFIRMED,
        "process": OrderStatus.PROCESSING,
        "ship": OrderStatus.SHIPPED,
        "deliver": OrderStatus.DELIVERED,
        "cancel": OrderStatus.CANCELLED,
    }

    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.admin = make_admin()
        self.product = make_product(self.vendor, price="100.00", stock=500)

    def _order_in(self, status):
        order = place_order(self.customer, self.product)
        Order.objects.filter(pk=order.pk).update(
            status=status, payment_status=PaymentStatus.PAID
        )
        return order

    def test_fulfilment_roles_follow_allowed_transitions(self):
        for user in (self.vendor, self.admin):
            service = OrderService(user)
            for status in OrderStatus.values:
                allowed = OrderStatusManager.get_allowed_transitions(status)
                for action, target in self.ACTIONS.items():
                    with self.subTest(role=user.role, status=status, action=action):
                        order = self._order_in(status)
                        if target in allowed:
                            moved = getattr(service, action)(order.pk)
                            self.assertEqual(moved.status, target)
                        else:
                            with self.assertRaises(InvalidTransition):
                                getattr(service, action)(order.pk)
                            order.refresh_from_db()
                            self.assertEqual(order.status, status)

    def test_customer_cancels_only_pending_and_never_fulfils(self):
        service = OrderService(self.customer)
        for status in OrderStatus.values:
            with self.subTest(status=status):
                order = self._order_in(status)
                if status == OrderStatus.PENDING:
                    self.assertEqual(service.cancel(order.pk).status, OrderStatus.CANCELLED)
                else:
                    with self.assertRaises(InvalidTransition):
                        service.cancel(order.pk)
                for action in ("confirm", "process", "ship", "deliver"):
                    with self.assertRaises(Forbidden):
                        getattr(service, action)(order.pk)


class CartServiceTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product(make_vendor(), price="250.00", stock=3)
        self.service = CartService(self.customer)

    def test_add_accumulates_quantity(self):
        self.service.add_item(self.product.pk, 1)
        cart = self.service.add_item(self.product.pk, 2)
        self.assertEqual(cart.items.get().quantity, 3)
        self.assertEqual(cart.subtotal, Decimal("750.00"))

    def test_add_beyond_stock_rejected(self):
        self.service.add_item(self.product.pk, 2)
        with self.assertRaises(OutOfStock):
            self.service.add_item(self.product.pk, 2)

    def test_zero_quantity_removes_line(self):
        self.service.add_item(self.product.pk, 1)
        cart = self.service.set_quantity(self.product.pk, 0)
        self.assertFalse(cart.items.exists())

    def test_remove_missing_line_is_not_found(self):
        with self.assertRaises(NotFound):
            self.service.remove_item(self.product.pk)

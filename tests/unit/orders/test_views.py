# tests/unit/orders/test_views.py

from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from apps.orders.enums import OrderStatus
from apps.orders.models import Order
from tests.unit.helpers import (SHIPPING_ADDRESS, make_admin, make_customer,
                                make_product, make_vendor, place_order)

ORDERS_URL = "/api/v1/orders/"
CART_URL = "/api/v1/cart/"


class OrderApiTests(APITestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vendor = make_vendor()
        self.product = make_product(self.vendor, price="1000.00", stock=10)

    def test_place_order(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(
            ORDERS_URL,
            {
                "items": [{"product_id": str(self.product.pk), "quantity": 2}],
                "shipping_address": SHIPPING_ADDRESS,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        (order,) = response.data["orders"]
        self.assertEqual(Decimal(str(order["total_amount"])), Decimal("2360.00"))
        self.assertEqual(order["status"], OrderStatus.PENDING)
        self.assertEqual(len(order["items"]), 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 8)

    def test_place_order_out_of_stock(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(
            ORDERS_URL,
            {
                "items": [{"product_id": str(self.product.pk), "quantity": 11}],
                "shipping_address": SHIPPING_ADDRESS,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "OUT_OF_STOCK")
        self.assertIn("error", response.data)

    def test_missing_shipping_address_is_validation_error(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(
            ORDERS_URL,
            {"items": [{"product_id": str(self.product.pk), "quantity": 1}]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "VALIDATION_ERROR")

    def test_anonymous_is_unauthorized(self):
        response = self.client.get(ORDERS_URL)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["code"], "UNAUTHORIZED")

    def test_list_is_role_scoped(self):
        place_order(self.customer, self.product)
        other_customer = make_customer()
        place_order(other_customer, self.product)

        self.client.force_authenticate(self.customer)
        self.assertEqual(self.client.get(ORDERS_URL).data["count"], 1)

        self.client.force_authenticate(self.vendor)
        self.assertEqual(self.client.get(ORDERS_URL).data["count"], 2)

        self.client.force_authenticate(make_vendor())
        self.assertEqual(self.client.get(ORDERS_URL).data["count"], 0)

        self.client.force_authenticate(make_admin())
        self.assertEqual(self.client.get(ORDERS_URL).data["count"], 2)

    def test_status_filter(self):
        first = place_order(self.customer, self.product)
        place_order(self.customer, self.product)
        Order.objects.filter(pk=first.pk).update(status=OrderStatus.CONFIRMED)

        self.client.force_authenticate(self.customer)
        response = self.client.get(ORDERS_URL, {"status": "confirmed"})
        self.assertEqual(response.data["count"], 1)

    def test_vendor_cannot_deliver_pending_order(self):
        order = place_order(self.customer, self.product)
        self.client.force_authenticate(self.vendor)

        response = self.client.post(f"{ORDERS_URL}{order.pk}/deliver/")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "INVALID_TRANSITION")

    def test_customer_cannot_confirm(self):
        order = place_order(self.customer, self.product)
        self.client.force_authenticate(self.customer)

        response = self.client.post(f"{ORDERS_URL}{order.pk}/confirm/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "FORBIDDEN")

    def test_cancel_restores_stock(self):
        order = place_order(self.customer, self.product, quantity=3)
        self.client.force_authenticate(self.customer)

        response = self.client.post(
            f"{ORDERS_URL}{order.pk}/cancel/", {"reason": "Ordered by mistake"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], OrderStatus.CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

    def test_vendor_ships_with_tracking(self):
        order = place_order(self.customer, self.product)
        self.client.force_authenticate(self.vendor)
        self.client.post(f"{ORDERS_URL}{order.pk}/confirm/")
        self.client.post(f"{ORDERS_URL}{order.pk}/process/")

        response = self.client.post(
            f"{ORDERS_URL}{order.pk}/ship/",
            {"carrier": "Delhivery", "tracking_number": "DL42"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], OrderStatus.SHIPPED)
        self.assertEqual(response.data["tracking_number"], "DL42")

    def test_timeline(self):
        order = place_order(self.customer, self.product)
        self.client.force_authenticate(self.customer)

        response = self.client.get(f"{ORDERS_URL}{order.pk}/timeline/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]["status"], OrderStatus.PENDING)
        self.assertTrue(response.data[0]["completed"])
        self.assertFalse(response.data[1]["completed"])

    def test_unknown_order_is_not_found(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get(f"{ORDERS_URL}00000000-0000-0000-0000-000000000000/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "NOT_FOUND")


class CartApiTests(APITestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product(make_vendor(), price="300.00", stock=5)
        self.client.force_authenticate(self.customer)

    def test_add_and_view_cart(self):
        response = self.client.post(
            f"{CART_URL}add_item/",
            {"product_id": str(self.product.pk), "quantity": 2},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(CART_URL)
        self.assertEqual(response.data["item_count"], 2)
        self.assertEqual(Decimal(str(response.data["subtotal"])), Decimal("600.00"))

    def test_update_and_remove_item(self):
        self.client.post(
            f"{CART_URL}add_item/",
            {"product_id": str(self.product.pk), "quantity": 1},
            format="json",
        )
        url = f"{CART_URL}items/{self.product.pk}/"

        response = self.client.patch(url, {"quantity": 4}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["items"][0]["quantity"], 4)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["items"], [])

    def test_vendor_has_no_cart(self):
        self.client.force_authenticate(make_vendor())
        response = self.client.get(CART_URL)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

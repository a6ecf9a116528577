# tests/unit/helpers.py

"""Factories shared by the unit tests."""

import hashlib
import hmac
import itertools
from decimal import Decimal

from apps.accounts.models import User
from apps.orders.services import OrderService
from apps.payments.models import Payment
from apps.payments.services import complete_payment
from apps.products.models import Product

_sequence = itertools.count(1)

SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "+919876543210",
    "address_line_1": "12 MG Road",
    "address_line_2": "",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560001",
    "country": "India",
}


def make_customer(**extra):
    n = next(_sequence)
    return User.objects.create_user(
        f"customer{n}@example.com", "pass12345", first_name="Asha", last_name="Rao", **extra
    )


def make_vendor(**extra):
    n = next(_sequence)
    return User.objects.create_vendor(
        f"vendor{n}@example.com", "pass12345", business_name=f"Store {n}", **extra
    )


def make_admin():
    n = next(_sequence)
    return User.objects.create_superuser(f"admin{n}@example.com", "pass12345")


def make_product(vendor, price="1000.00", stock=10, **extra):
    n = next(_sequence)
    return Product.objects.create(
        vendor=vendor,
        name=extra.pop("name", f"Product {n}"),
        sku=f"SKU-{n:05d}",
        price=Decimal(price),
        stock_quantity=stock,
        **extra,
    )


def place_order(customer, product, quantity=1):
    (order,) = OrderService(customer).place_orders(
        shipping_address=SHIPPING_ADDRESS,
        items=[{"product_id": product.pk, "quantity": quantity}],
    )
    return order


def sign(gateway_order_id, gateway_payment_id, secret="test_secret"):
    return hmac.new(
        secret.encode(),
        f"{gateway_order_id}|{gateway_payment_id}".encode(),
        hashlib.sha256,
    ).hexdigest()


def make_pending_payment(order, gateway_order_id="order_GW1", method="card"):
    total = order.total_amount
    return Payment.objects.create(
        order=order,
        customer=order.customer,
        amount=total,
        convenience_fee=total * 0,
        tax=total * 0,
        total_amount=total,
        currency=str(total.currency),
        method=method,
        gateway_order_id=gateway_order_id,
    )


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


class FakeGateway:
    """In-memory gateway recording calls; set ``fail_with`` to raise."""

    key_id = "rzp_test_key"
    merchant_name = "Marketplace Test"

    def __init__(self, refund_status="pending", attempts=None):
        self.refund_status = refund_status
        self.attempts = attempts or {}
        self.fail_with = None
        self.calls = []

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def create_order(self, amount_minor, currency, receipt, notes=None):
        self.calls.append(("create_order", amount_minor, currency, receipt, notes))
        self._maybe_fail()
        return {"id": f"order_GW{len(self.calls)}", "amount": amount_minor}

    def create_refund(self, payment_id, amount_minor, notes=None):
        self.calls.append(("create_refund", payment_id, amount_minor, notes))
        self._maybe_fail()
        return {"id": f"rfnd_{len(self.calls)}", "status": self.refund_status}

    def fetch_order_payments(self, gateway_order_id):
        self.calls.append(("fetch_order_payments", gateway_order_id))
        self._maybe_fail()
        return self.attempts.get(gateway_order_id, [])

    def verify_payment_signature(self, gateway_order_id, gateway_payment_id, signature):
        return hmac.compare_digest(
            sign(gateway_order_id, gateway_payment_id).encode(), signature.encode()
        )


def delivered_paid_order(customer, vendor, price="1000.00", gateway_payment_id="pay_1"):
    """Place, pay and deliver one order; returns ``(order, payment)``."""
    order = place_order(customer, make_product(vendor, price=price))
    payment = make_pending_payment(order, gateway_order_id=f"order_{gateway_payment_id}")
    payment = complete_payment(payment.pk, gateway_payment_id)
    service = OrderService(vendor)
    service.process(order.pk)
    service.ship(order.pk)
    order = service.deliver(order.pk)
    return order, payment

# apps/orders/utils.py

import random
import time
from decimal import Decimal
from typing import ClassVar

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import OutOfStock
from apps.core.utils import percentage_of, quantize_amount
from apps.orders.enums import DiscountType, OrderStatus
from apps.products.models import Product

logger = structlog.get_logger(__name__)


def generate_order_number() -> str:
    """ORD followed by the epoch in milliseconds and four random digits."""
    return f"ORD{int(time.time() * 1000)}{random.randint(0, 9999):04d}"


class OrderCalculator:
    """Utility class for order calculations."""

    @staticmethod
    def calculate_tax(subtotal: Decimal, tax_rate: Decimal | None = None) -> Decimal:
        if tax_rate is None:
            tax_rate = getattr(settings, "ORDER_TAX_RATE", Decimal("0.18"))
        return percentage_of(subtotal, tax_rate)

    @staticmethod
    def calculate_shipping(subtotal: Decimal) -> Decimal:
        """Free shipping strictly above the threshold, flat fee otherwise."""
        threshold = getattr(settings, "FREE_SHIPPING_THRESHOLD", Decimal("500.00"))
        if subtotal > threshold:
            return Decimal("0.00")
        return quantize_amount(getattr(settings, "FLAT_SHIPPING_FEE", Decimal("50.00")))

    @staticmethod
    def calculate_discount(subtotal: Decimal, coupon=None) -> Decimal:
        if coupon is None:
            return Decimal("0.00")

        if coupon.discount_type == DiscountType.PERCENTAGE:
            discount = percentage_of(subtotal, coupon.discount_value / Decimal("100"))
            if coupon.maximum_discount_amount is not None:
                discount = min(discount, coupon.maximum_discount_amount)
        else:
            discount = quantize_amount(coupon.discount_value)

        return min(discount, subtotal)

    @classmethod
    def calculate_order_totals(
        cls,
        subtotal: Decimal,
        coupon=None,
        tax_rate: Decimal | None = None,
    ) -> dict[str, Decimal]:
        subtotal = quantize_amount(subtotal)
        tax_amount = cls.calculate_tax(subtotal, tax_rate)
        shipping_fee = cls.calculate_shipping(subtotal)
        discount_amount = cls.calculate_discount(subtotal, coupon)

        total = subtotal + tax_amount + shipping_fee - discount_amount

        return {
            "subtotal": subtotal,
            "tax_amount": tax_amount,
            "shipping_fee": shipping_fee,
            "discount_amount": discount_amount,
            "total_amount": quantize_amount(total),
        }


class OrderStatusManager:
    """Utility class for managing order status transitions."""

    ALLOWED_TRANSITIONS: ClassVar = {
        OrderStatus.PENDING: [
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
        ],
        OrderStatus.CONFIRMED: [
            OrderStatus.PROCESSING,
            OrderStatus.CANCELLED,
        ],
        OrderStatus.PROCESSING: [
            OrderStatus.SHIPPED,
            OrderStatus.CANCELLED,
        ],
        OrderStatus.SHIPPED: [
            OrderStatus.DELIVERED,
        ],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    }

    # Timestamp field stamped when an order enters each status
    TIMESTAMP_FIELDS: ClassVar = {
        OrderStatus.CONFIRMED: "confirmed_at",
        OrderStatus.PROCESSING: "processing_at",
        OrderStatus.SHIPPED: "shipped_at",
        OrderStatus.DELIVERED: "delivered_at",
        OrderStatus.CANCELLED: "cancelled_at",
    }

    @classmethod
    def can_transition(cls, current_status: str, new_status: str) -> bool:
        return new_status in cls.ALLOWED_TRANSITIONS.get(current_status, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> list[str]:
        return cls.ALLOWED_TRANSITIONS.get(current_status, [])


class InventoryManager:
    """
    Stock side of order placement and cancellation.

    Each order claims its stock commit or release with a conditional update on
    its own row, so running either step twice for the same order is a no-op.
    """

    @staticmethod
    def check_availability(items: list[dict]) -> list[dict]:
        """Report availability without reserving anything."""
        results = []
        products = {
            str(pk): product
            for pk, product in Product.objects.in_bulk(
                [item["product_id"] for item in items]
            ).items()
        }

        for item in items:
            product = products.get(str(item["product_id"]))
            requested = item["quantity"]
            results.append(
                {
                    "product_id": str(item["product_id"]),
                    "product_name": product.name if product else "Unknown",
                    "requested_quantity": requested,
                    "available_quantity": product.stock_quantity if product else 0,
                    "is_available": bool(
                        product
                        and product.is_available
                        and product.has_stock_for(requested)
                    ),
                }
            )
        return results

    @staticmethod
    def commit_order_stock(order) -> bool:
        """
        Decrement stock for every line of ``order``.

        Raises OutOfStock when any line can no longer be served; the enclosing
        transaction is rolled back, restoring earlier lines of the same order.
        Returns False when the order had already been committed.
        """
        with transaction.atomic():
            claimed = type(order).objects.filter(
                pk=order.pk, stock_committed_at__isnull=True
            ).update(stock_committed_at=timezone.now())
            if not claimed:
                return False

            for item in order.items.all():
                if not Product.objects.decrement_stock(item.product_id, item.quantity):
                    product = Product.all_objects.get(pk=item.product_id)
                    raise OutOfStock(
                        f"Insufficient stock for {product.name}",
                        details={
                            "product_id": str(item.product_id),
                            "requested_quantity": item.quantity,
                            "available_quantity": product.stock_quantity,
                        },
                    )

        order.refresh_from_db(fields=["stock_committed_at"])
        logger.info(
            "order_stock_committed",
            order_id=str(order.pk),
            order_number=order.order_number,
        )
        return True

    @staticmethod
    def release_order_stock(order) -> bool:
        """Return the committed stock of ``order`` exactly once."""
        with transaction.atomic():
            claimed = type(order).objects.filter(
                pk=order.pk,
                stock_committed_at__isnull=False,
                stock_released_at__isnull=True,
            ).update(stock_released_at=timezone.now())
            if not claimed:
                return False

            for item in order.items.all():
                Product.objects.restore_stock(item.product_id, item.quantity)

        order.refresh_from_db(fields=["stock_released_at"])
        logger.info(
            "order_stock_released",
            order_id=str(order.pk),
            order_number=order.order_number,
        )
        return True

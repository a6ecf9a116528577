# apps/orders/enums.py

"""
Enums for the orders app.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """Order status choices."""

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    """Payment flag on the order, tracked independently of the order status."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    AMOUNT = "amount", "Fixed amount"

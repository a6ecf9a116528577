# apps/orders/managers.py

from datetime import timedelta

from django.db import models
from django.utils import timezone

from apps.orders.enums import OrderStatus, PaymentStatus


class CartManager(models.Manager):
    """Custom manager for Cart model."""

    def for_user(self, user):
        """Get or create the cart of an authenticated customer."""
        cart, _ = self.get_or_create(user=user)
        return cart


class OrderQuerySet(models.QuerySet):
    def visible_to(self, user):
        """
        Role scope applied before any other filter: customers see their own
        orders, vendors the orders they fulfil, admins everything.
        """
        role = getattr(user, "role", None)
        if role == "admin":
            return self
        if role == "vendor":
            return self.filter(vendor=user)
        if role == "customer":
            return self.filter(customer=user)
        return self.none()

    def with_details(self):
        return self.select_related("customer", "vendor").prefetch_related(
            "items__product"
        )


class OrderManager(models.Manager.from_queryset(OrderQuerySet)):
    """Custom manager for Order model."""

    def pending(self):
        return self.get_queryset().filter(status=OrderStatus.PENDING)

    def unpaid_older_than(self, hours):
        cutoff = timezone.now() - timedelta(hours=hours)
        return self.pending().filter(
            payment_status=PaymentStatus.PENDING,
            created_at__lt=cutoff,
        )

    def awaiting_stock_commit(self, minutes):
        """Orders whose stock decrement never completed."""
        cutoff = timezone.now() - timedelta(minutes=minutes)
        return (
            self.get_queryset()
            .exclude(status=OrderStatus.CANCELLED)
            .filter(stock_committed_at__isnull=True, created_at__lt=cutoff)
        )

    def awaiting_stock_release(self):
        """Cancelled orders whose stock has not been returned yet."""
        return self.get_queryset().filter(
            status=OrderStatus.CANCELLED,
            stock_committed_at__isnull=False,
            stock_released_at__isnull=True,
        )

    def vendor_order_ids(self, vendor):
        return self.get_queryset().filter(vendor=vendor).values_list("id", flat=True)


class CouponManager(models.Manager):
    def usable(self):
        now = timezone.now()
        return self.get_queryset().filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now),
            is_active=True,
        )

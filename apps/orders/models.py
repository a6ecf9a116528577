# apps/orders/models.py

"""
Cart, coupon and order models.

An order belongs to one customer and one vendor. Status changes go through
the named transition methods on ``Order``; each stamps its own timestamp and
rejects edges that are not in ``OrderStatusManager.ALLOWED_TRANSITIONS``.
"""

from decimal import Decimal
from typing import ClassVar

import structlog
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.db.models import F
from django.utils import timezone
from djmoney.models.fields import MoneyField

from apps.core.exceptions import InvalidTransition
from apps.core.models import AuditStampedModelBase
from apps.orders.enums import DiscountType, OrderStatus, PaymentStatus
from apps.orders.managers import CartManager, CouponManager, OrderManager
from apps.orders.utils import (InventoryManager, OrderStatusManager,
                               generate_order_number)

logger = structlog.get_logger(__name__)

ADDRESS_FIELDS = (
    "full_name",
    "phone",
    "address_line_1",
    "address_line_2",
    "city",
    "state",
    "postal_code",
    "country",
)


class Cart(AuditStampedModelBase):
    """
    Per-customer pending line items, converted into orders at checkout.
    """

    user = models.OneToOneField(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="cart",
        help_text="Customer who owns this cart",
    )

    objects = CartManager()

    class Meta:
        db_table = "orders_cart"

    def __str__(self) -> str:
        return f"Cart for {self.user.email}"

    def list_items(self) -> list[dict]:
        return [
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in self.items.all()
        ]

    def add_item(self, product, quantity: int) -> "CartItem":
        item, created = CartItem.objects.get_or_create(
            cart=self,
            product=product,
            defaults={"quantity": quantity},
        )
        if not created:
            item.quantity = F("quantity") + quantity
            item.save(update_fields=["quantity", "updated_at"])
            item.refresh_from_db(fields=["quantity"])
        return item

    def remove_item(self, product_id) -> None:
        self.items.filter(product_id=product_id).delete()

    def clear(self) -> None:
        self.items.all().delete()

    @property
    def subtotal(self) -> Decimal:
        return sum(
            (item.product.price * item.quantity for item in self.items.all()),
            Decimal("0.00"),
        )


class CartItem(AuditStampedModelBase):
    cart = models.ForeignKey(
        Cart,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="cart_items",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )

    class Meta:
        db_table = "orders_cart_item"
        constraints: ClassVar[list] = [
            models.UniqueConstraint(
                fields=["cart", "product"], name="unique_cart_product"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.product.name}"


class Coupon(AuditStampedModelBase):
    """
    Discount code applied at checkout, optionally restricted to one vendor.
    """

    code = models.CharField(
        max_length=20,
        unique=True,
        validators=[
            RegexValidator(
                regex=r"^[A-Z0-9]{4,20}$",
                message="Coupon codes are 4 to 20 uppercase letters or digits.",
            )
        ],
    )
    description = models.CharField(max_length=255, blank=True)
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE,
    )
    discount_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    minimum_order_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    maximum_discount_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Cap for percentage discounts",
    )
    expires_at = models.DateTimeField(null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    vendor = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="coupons",
        help_text="Restrict the coupon to this vendor's products",
    )

    objects = CouponManager()

    class Meta:
        db_table = "orders_coupon"

    def __str__(self) -> str:
        return self.code

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def applies_to(self, vendor_id, subtotal: Decimal) -> bool:
        if self.vendor_id and self.vendor_id != vendor_id:
            return False
        return subtotal >= self.minimum_order_amount

    def redeem(self) -> bool:
        """Count one use; False when the usage limit was reached meanwhile."""
        queryset = Coupon.objects.filter(pk=self.pk)
        if self.usage_limit is not None:
            queryset = queryset.filter(used_count__lt=self.usage_limit)
        return bool(queryset.update(used_count=F("used_count") + 1))


class Order(AuditStampedModelBase):
    """
    One vendor-scoped purchase by a customer.
    """

    order_number = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        help_text="Unique order number for customer reference",
    )

    customer = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Customer who placed the order",
    )

    vendor = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="vendor_orders",
        help_text="Vendor fulfilling the order",
    )

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )

    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )

    # Contact information
    email = models.EmailField(help_text="Contact email for this order")

    # Shipping address
    shipping_full_name = models.CharField(max_length=150)
    shipping_phone = models.CharField(max_length=20)
    shipping_address_line_1 = models.CharField(max_length=255)
    shipping_address_line_2 = models.CharField(max_length=255, blank=True)
    shipping_city = models.CharField(max_length=100)
    shipping_state = models.CharField(max_length=100)
    shipping_postal_code = models.CharField(max_length=20)
    shipping_country = models.CharField(max_length=100, default="India")

    # Billing address
    billing_same_as_shipping = models.BooleanField(default=True)
    billing_full_name = models.CharField(max_length=150, blank=True)
    billing_phone = models.CharField(max_length=20, blank=True)
    billing_address_line_1 = models.CharField(max_length=255, blank=True)
    billing_address_line_2 = models.CharField(max_length=255, blank=True)
    billing_city = models.CharField(max_length=100, blank=True)
    billing_state = models.CharField(max_length=100, blank=True)
    billing_postal_code = models.CharField(max_length=20, blank=True)
    billing_country = models.CharField(max_length=100, blank=True)

    # Financial information
    subtotal = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        help_text="Sum of line totals",
    )
    tax_amount = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        default=Decimal("0.00"),
    )
    shipping_fee = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        default=Decimal("0.00"),
    )
    discount_amount = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        default=Decimal("0.00"),
    )
    total_amount = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        help_text="subtotal + tax + shipping - discount",
    )

    coupon_code = models.CharField(max_length=20, blank=True)
    special_instructions = models.TextField(blank=True)
    payment_reference = models.CharField(
        max_length=100,
        blank=True,
        help_text="Client-side payment reference supplied at checkout",
    )

    # Tracking and fulfillment
    carrier = models.CharField(max_length=100, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    estimated_delivery_date = models.DateField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    # Lifecycle timestamps, each set once by its transition
    confirmed_at = models.DateTimeField(null=True, blank=True)
    processing_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Stock saga markers
    stock_committed_at = models.DateTimeField(null=True, blank=True)
    stock_released_at = models.DateTimeField(null=True, blank=True)

    objects = OrderManager()

    class Meta:
        db_table = "orders_order"
        ordering: ClassVar[list[str]] = ["-created_at"]
        indexes: ClassVar[list] = [
            models.Index(fields=["customer", "status"], name="order_customer_status_idx"),
            models.Index(fields=["vendor", "status"], name="order_vendor_status_idx"),
            models.Index(fields=["created_at"], name="order_created_at_idx"),
        ]

    def __str__(self) -> str:
        return f"Order {self.order_number}"

    def save(self, *args, **kwargs) -> None:
        if not self.order_number:
            self.order_number = self._unique_order_number()
        super().save(*args, **kwargs)

    @staticmethod
    def _unique_order_number() -> str:
        while True:
            order_number = generate_order_number()
            if not Order.objects.filter(order_number=order_number).exists():
                return order_number

    # Addresses

    def get_shipping_address(self) -> dict:
        return {field: getattr(self, f"shipping_{field}") for field in ADDRESS_FIELDS}

    def get_billing_address(self) -> dict:
        if self.billing_same_as_shipping:
            return self.get_shipping_address()
        return {field: getattr(self, f"billing_{field}") for field in ADDRESS_FIELDS}

    def set_addresses(self, shipping: dict | None, billing: dict | None) -> list[str]:
        """Copy address dicts onto the order; returns the changed field names."""
        changed = []
        if shipping:
            for field in ADDRESS_FIELDS:
                if field in shipping:
                    setattr(self, f"shipping_{field}", shipping[field] or "")
                    changed.append(f"shipping_{field}")
        if billing is not None:
            self.billing_same_as_shipping = not billing
            changed.append("billing_same_as_shipping")
            for field in ADDRESS_FIELDS:
                setattr(self, f"billing_{field}", (billing or {}).get(field, ""))
                changed.append(f"billing_{field}")
        return changed

    @property
    def is_awaiting_payment(self) -> bool:
        return (
            self.status == OrderStatus.PENDING
            and self.payment_status == PaymentStatus.PENDING
        )

    def calculate_total(self) -> Decimal:
        return (
            self.subtotal.amount
            + self.tax_amount.amount
            + self.shipping_fee.amount
            - self.discount_amount.amount
        )

    # State machine

    def _move_to(self, new_status: str, extra_fields: list[str] | None = None) -> None:
        if not OrderStatusManager.can_transition(self.status, new_status):
            raise InvalidTransition(
                f"Cannot move order from {self.status} to {new_status}",
                details={
                    "current_status": self.status,
                    "requested_status": new_status,
                    "allowed": OrderStatusManager.get_allowed_transitions(self.status),
                },
            )

        previous = self.status
        self.status = new_status
        timestamp_field = OrderStatusManager.TIMESTAMP_FIELDS[new_status]
        setattr(self, timestamp_field, timezone.now())
        self.save(
            update_fields=[
                "status",
                timestamp_field,
                "updated_at",
                *(extra_fields or []),
            ]
        )
        logger.info(
            "order_status_changed",
            order_id=str(self.pk),
            order_number=self.order_number,
            from_status=previous,
            to_status=new_status,
        )

    def confirm(self) -> None:
        self._move_to(OrderStatus.CONFIRMED)

    def start_processing(self) -> None:
        self._move_to(OrderStatus.PROCESSING)

    def ship(
        self, carrier: str = "", tracking_number: str = "", estimated_delivery_date=None
    ) -> None:
        self.carrier = carrier or self.carrier
        self.tracking_number = tracking_number or self.tracking_number
        self.estimated_delivery_date = (
            estimated_delivery_date or self.estimated_delivery_date
        )
        self._move_to(
            OrderStatus.SHIPPED,
            ["carrier", "tracking_number", "estimated_delivery_date"],
        )

    def deliver(self) -> None:
        if self.status == OrderStatus.SHIPPED and self.payment_status != PaymentStatus.PAID:
            raise InvalidTransition(
                "Order must be paid before it can be delivered",
                details={"payment_status": self.payment_status},
            )
        self._move_to(OrderStatus.DELIVERED)

    def cancel(self, reason: str = "") -> None:
        """Cancel the order and give its stock back."""
        self.cancellation_reason = reason
        self._move_to(OrderStatus.CANCELLED, ["cancellation_reason"])
        InventoryManager.release_order_stock(self)

    def update_tracking(
        self, carrier: str = "", tracking_number: str = "", estimated_delivery_date=None
    ) -> None:
        if self.status != OrderStatus.SHIPPED:
            raise InvalidTransition("Tracking can only be updated on shipped orders")
        if carrier:
            self.carrier = carrier
        if tracking_number:
            self.tracking_number = tracking_number
        if estimated_delivery_date:
            self.estimated_delivery_date = estimated_delivery_date
        self.save(
            update_fields=[
                "carrier",
                "tracking_number",
                "estimated_delivery_date",
                "updated_at",
            ]
        )

    def mark_paid(self) -> None:
        """Flag the order as paid, confirming it when still pending."""
        if self.payment_status == PaymentStatus.PAID:
            return
        if self.payment_status == PaymentStatus.REFUNDED:
            raise InvalidTransition("A refunded order cannot be paid again")
        self.payment_status = PaymentStatus.PAID
        self.save(update_fields=["payment_status", "updated_at"])
        if self.status == OrderStatus.PENDING:
            self.confirm()

    def mark_refunded(self) -> None:
        if self.payment_status == PaymentStatus.REFUNDED:
            return
        if self.payment_status != PaymentStatus.PAID:
            raise InvalidTransition("Only paid orders can be refunded")
        self.payment_status = PaymentStatus.REFUNDED
        self.save(update_fields=["payment_status", "updated_at"])

    def get_timeline(self) -> list[dict]:
        steps = [
            (OrderStatus.PENDING, self.created_at),
            (OrderStatus.CONFIRMED, self.confirmed_at),
            (OrderStatus.PROCESSING, self.processing_at),
            (OrderStatus.SHIPPED, self.shipped_at),
            (OrderStatus.DELIVERED, self.delivered_at),
        ]
        timeline = [
            {
                "status": status,
                "label": OrderStatus(status).label,
                "date": stamped_at,
                "completed": stamped_at is not None,
            }
            for status, stamped_at in steps
        ]
        if self.cancelled_at:
            timeline.append(
                {
                    "status": OrderStatus.CANCELLED,
                    "label": OrderStatus.CANCELLED.label,
                    "date": self.cancelled_at,
                    "completed": True,
                    "reason": self.cancellation_reason,
                }
            )
        return timeline


class OrderItem(AuditStampedModelBase):
    """
    Line item with the product details captured at order time.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    product_name = models.CharField(max_length=255)
    product_sku = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
        help_text="Price per unit at time of order",
    )
    line_total = MoneyField(
        max_digits=12,
        decimal_places=2,
        default_currency="INR",
    )

    class Meta:
        db_table = "orders_order_item"
        ordering: ClassVar[list[str]] = ["created_at"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.product_name} (Order {self.order.order_number})"

    def save(self, *args, **kwargs) -> None:
        self.line_total = self.unit_price * self.quantity
        super().save(*args, **kwargs)

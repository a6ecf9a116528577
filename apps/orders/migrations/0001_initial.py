import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import djmoney.models.fields
from django.conf import settings
from django.db import migrations, models

CURRENCY_CHOICES = [("INR", "Indian Rupee")]


def audit_fields(prefix):
    return [
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4,
                editable=False,
                help_text="Unique identifier for this record",
                primary_key=True,
                serialize=False,
            ),
        ),
        (
            "created_at",
            models.DateTimeField(auto_now_add=True, help_text="When this record was created"),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="When this record was last updated"),
        ),
        (
            "is_active",
            models.BooleanField(default=True, help_text="Whether this record is active"),
        ),
        (
            "created_by",
            models.ForeignKey(
                blank=True,
                help_text="User who created this record",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name=f"{prefix}_created",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        (
            "updated_by",
            models.ForeignKey(
                blank=True,
                help_text="User who last updated this record",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name=f"{prefix}_updated",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


def money_field(name, **kwargs):
    return [
        (
            f"{name}_currency",
            djmoney.models.fields.CurrencyField(
                choices=CURRENCY_CHOICES, default="INR", editable=False, max_length=3
            ),
        ),
        (
            name,
            djmoney.models.fields.MoneyField(
                decimal_places=2, default_currency="INR", max_digits=12, **kwargs
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Cart",
            fields=[
                *audit_fields("cart"),
                (
                    "user",
                    models.OneToOneField(
                        help_text="Customer who owns this cart",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cart",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"db_table": "orders_cart"},
        ),
        migrations.CreateModel(
            name="CartItem",
            fields=[
                *audit_fields("cartitem"),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "cart",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.cart",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cart_items",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "db_table": "orders_cart_item",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("cart", "product"), name="unique_cart_product"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Coupon",
            fields=[
                *audit_fields("coupon"),
                (
                    "code",
                    models.CharField(
                        max_length=20,
                        unique=True,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Coupon codes are 4 to 20 uppercase letters or digits.",
                                regex="^[A-Z0-9]{4,20}$",
                            )
                        ],
                    ),
                ),
                ("description", models.CharField(blank=True, max_length=255)),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("percentage", "Percentage"), ("amount", "Fixed amount")],
                        default="percentage",
                        max_length=20,
                    ),
                ),
                (
                    "discount_value",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01"))
                        ],
                    ),
                ),
                (
                    "minimum_order_amount",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=12
                    ),
                ),
                (
                    "maximum_discount_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Cap for percentage discounts",
                        max_digits=12,
                        null=True,
                    ),
                ),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("usage_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("used_count", models.PositiveIntegerField(default=0)),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Restrict the coupon to this vendor's products",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="coupons",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"db_table": "orders_coupon"},
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                *audit_fields("order"),
                (
                    "order_number",
                    models.CharField(
                        editable=False,
                        help_text="Unique order number for customer reference",
                        max_length=32,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("processing", "Processing"),
                            ("shipped", "Shipped"),
                            ("delivered", "Delivered"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        help_text="Contact email for this order", max_length=254
                    ),
                ),
                ("shipping_full_name", models.CharField(max_length=150)),
                ("shipping_phone", models.CharField(max_length=20)),
                ("shipping_address_line_1", models.CharField(max_length=255)),
                ("shipping_address_line_2", models.CharField(blank=True, max_length=255)),
                ("shipping_city", models.CharField(max_length=100)),
                ("shipping_state", models.CharField(max_length=100)),
                ("shipping_postal_code", models.CharField(max_length=20)),
                ("shipping_country", models.CharField(default="India", max_length=100)),
                ("billing_same_as_shipping", models.BooleanField(default=True)),
                ("billing_full_name", models.CharField(blank=True, max_length=150)),
                ("billing_phone", models.CharField(blank=True, max_length=20)),
                ("billing_address_line_1", models.CharField(blank=True, max_length=255)),
                ("billing_address_line_2", models.CharField(blank=True, max_length=255)),
                ("billing_city", models.CharField(blank=True, max_length=100)),
                ("billing_state", models.CharField(blank=True, max_length=100)),
                ("billing_postal_code", models.CharField(blank=True, max_length=20)),
                ("billing_country", models.CharField(blank=True, max_length=100)),
                *money_field("subtotal", help_text="Sum of line totals"),
                *money_field("tax_amount", default=Decimal("0.00")),
                *money_field("shipping_fee", default=Decimal("0.00")),
                *money_field("discount_amount", default=Decimal("0.00")),
                *money_field(
                    "total_amount", help_text="subtotal + tax + shipping - discount"
                ),
                ("coupon_code", models.CharField(blank=True, max_length=20)),
                ("special_instructions", models.TextField(blank=True)),
                (
                    "payment_reference",
                    models.CharField(
                        blank=True,
                        help_text="Client-side payment reference supplied at checkout",
                        max_length=100,
                    ),
                ),
                ("carrier", models.CharField(blank=True, max_length=100)),
                ("tracking_number", models.CharField(blank=True, max_length=100)),
                ("estimated_delivery_date", models.DateField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("processing_at", models.DateTimeField(blank=True, null=True)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("stock_committed_at", models.DateTimeField(blank=True, null=True)),
                ("stock_released_at", models.DateTimeField(blank=True, null=True)),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="Customer who placed the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        help_text="Vendor fulfilling the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="vendor_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "orders_order",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer", "status"], name="order_customer_status_idx"
                    ),
                    models.Index(
                        fields=["vendor", "status"], name="order_vendor_status_idx"
                    ),
                    models.Index(fields=["created_at"], name="order_created_at_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                *audit_fields("orderitem"),
                ("product_name", models.CharField(max_length=255)),
                ("product_sku", models.CharField(max_length=100)),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                *money_field("unit_price", help_text="Price per unit at time of order"),
                *money_field("line_total"),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "db_table": "orders_order_item",
                "ordering": ["created_at"],
            },
        ),
    ]

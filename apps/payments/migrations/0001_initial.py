import uuid

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
        ("orders", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                *audit_fields("payment"),
                *money_field("amount"),
                *money_field("convenience_fee"),
                *money_field("tax"),
                *money_field(
                    "total_amount",
                    help_text="amount + convenience fee + tax; charged through the gateway",
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("upi", "UPI"),
                            ("card", "Card"),
                            ("netbanking", "Net banking"),
                            ("wallet", "Wallet"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "gateway_order_id",
                    models.CharField(blank=True, max_length=100, null=True, unique=True),
                ),
                (
                    "gateway_payment_id",
                    models.CharField(blank=True, max_length=100, null=True, unique=True),
                ),
                ("gateway_signature", models.CharField(blank=True, max_length=255)),
                ("receipt", models.CharField(blank=True, max_length=100)),
                ("failure_reason", models.TextField(blank=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="orders.order",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "payments_payment",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "completed")),
                        fields=("order",),
                        name="unique_completed_payment_per_order",
                    )
                ],
            },
        ),
    ]

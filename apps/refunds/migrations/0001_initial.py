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


def user_fk(related_name, on_delete=django.db.models.deletion.PROTECT, **kwargs):
    return models.ForeignKey(
        on_delete=on_delete,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
        **kwargs,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
        ("payments", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="RefundRequest",
            fields=[
                *audit_fields("refundrequest"),
                *money_field("amount"),
                ("reason", models.TextField()),
                (
                    "reason_category",
                    models.CharField(
                        choices=[
                            ("duplicate", "Duplicate"),
                            ("not_as_described", "Not as described"),
                            ("defective", "Defective"),
                            ("wrong_item", "Wrong item"),
                            ("other", "Other"),
                        ],
                        default="other",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("attachments", models.JSONField(blank=True, default=list)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("accepted", "Accepted"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("rejection_reason", models.TextField(blank=True)),
                (
                    "order",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="refund_request",
                        to="orders.order",
                    ),
                ),
                (
                    "customer",
                    user_fk("refund_requests", django.db.models.deletion.CASCADE),
                ),
                (
                    "vendor",
                    user_fk("received_refund_requests", django.db.models.deletion.CASCADE),
                ),
                (
                    "processed_by",
                    user_fk(
                        "processed_refund_requests",
                        django.db.models.deletion.SET_NULL,
                        blank=True,
                        null=True,
                    ),
                ),
            ],
            options={
                "db_table": "refunds_refund_request",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Refund",
            fields=[
                *audit_fields("refund"),
                *money_field("amount"),
                ("reason", models.TextField()),
                ("gateway_payment_id", models.CharField(max_length=100)),
                ("gateway_refund_id", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="initiated",
                        max_length=20,
                    ),
                ),
                (
                    "refund_method",
                    models.CharField(
                        choices=[
                            ("original_payment", "Original payment"),
                            ("bank_transfer", "Bank transfer"),
                            ("wallet", "Wallet"),
                        ],
                        default="original_payment",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                (
                    "refund_request",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund",
                        to="refunds.refundrequest",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="orders.order",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="payments.payment",
                    ),
                ),
                ("customer", user_fk("refunds")),
                ("vendor", user_fk("vendor_refunds")),
                (
                    "processed_by",
                    user_fk(
                        "processed_refunds",
                        django.db.models.deletion.SET_NULL,
                        blank=True,
                        null=True,
                    ),
                ),
            ],
            options={
                "db_table": "refunds_refund",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer", "status"], name="refund_customer_status_idx"
                    ),
                    models.Index(
                        fields=["vendor", "status"], name="refund_vendor_status_idx"
                    ),
                ],
            },
        ),
    ]

# apps/products/models.py

"""
Catalog records read by the order engine.

Stock is only ever changed through ``Product.objects.decrement_stock`` and
``Product.objects.restore_stock``; both are single conditional UPDATE
statements so concurrent orders cannot oversell.
"""

from decimal import Decimal
from typing import ClassVar

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.models import ActiveManager, AllObjectsManager, AuditStampedModelBase

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    INACTIVE = "inactive", _("Inactive")
    DRAFT = "draft", _("Draft")
    OUT_OF_STOCK = "out_of_stock", _("Out of stock")


class ProductManager(ActiveManager):
    """Custom manager for Product model."""

    def available(self):
        """Products a customer can currently order."""
        return self.get_queryset().filter(
            status=ProductStatus.ACTIVE, is_published=True
        )

    def decrement_stock(self, product_id, quantity: int) -> bool:
        """
        Atomically take ``quantity`` units from stock.
        Returns False when the product no longer has enough stock.
        """
        product = self.model.all_objects.filter(pk=product_id).only(
            "track_inventory"
        ).first()
        if product is None:
            return False
        if not product.track_inventory:
            return True

        updated = self.model.all_objects.filter(
            pk=product_id,
            track_inventory=True,
            stock_quantity__gte=quantity,
        ).update(
            stock_quantity=F("stock_quantity") - quantity,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.info(
                "stock_decrement_rejected",
                product_id=str(product_id),
                quantity=quantity,
            )
        return bool(updated)

    def restore_stock(self, product_id, quantity: int) -> None:
        """Return ``quantity`` units to stock, including for soft-deleted products."""
        self.model.all_objects.filter(pk=product_id, track_inventory=True).update(
            stock_quantity=F("stock_quantity") + quantity,
            updated_at=timezone.now(),
        )


class Product(AuditStampedModelBase):
    """
    A vendor's sellable item. Only the fields the order engine needs are kept.
    """

    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="products",
        help_text=_("Vendor selling this product"),
    )

    name = models.CharField(
        max_length=255,
        help_text=_("Product name"),
        db_index=True,
    )

    sku = models.CharField(
        max_length=100,
        unique=True,
        help_text=_("Stock Keeping Unit - unique product identifier"),
        db_index=True,
    )

    description = models.TextField(blank=True)

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text=_("Current unit price"),
    )

    stock_quantity = models.PositiveIntegerField(
        default=0,
        help_text=_("Current stock quantity"),
    )

    low_stock_threshold = models.PositiveIntegerField(
        default=10,
        help_text=_("Quantity threshold for low stock alerts"),
    )

    track_inventory = models.BooleanField(
        default=True,
        help_text=_("Whether to track inventory for this product"),
    )

    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
        db_index=True,
    )

    is_published = models.BooleanField(default=True)

    objects = ProductManager()
    all_objects = AllObjectsManager()

    class Meta:
        verbose_name = _("Product")
        verbose_name_plural = _("Products")
        ordering: ClassVar[list] = ["-created_at"]
        indexes: ClassVar[list] = [
            models.Index(fields=["vendor", "status"], name="product_vendor_status_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_available(self) -> bool:
        return (
            self.is_active
            and self.is_published
            and self.status == ProductStatus.ACTIVE
        )

    @property
    def is_low_stock(self) -> bool:
        if not self.track_inventory:
            return False
        return self.stock_quantity <= self.low_stock_threshold

    def has_stock_for(self, quantity: int) -> bool:
        return not self.track_inventory or self.stock_quantity >= quantity

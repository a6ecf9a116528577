# apps/products/admin.py

from typing import ClassVar

from django.contrib import admin

from apps.products.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display: ClassVar[list] = [
        "name",
        "sku",
        "vendor",
        "price",
        "stock_quantity",
        "is_low_stock",
        "status",
        "is_published",
        "is_active",
    ]
    list_filter: ClassVar[list] = ["status", "is_published", "is_active"]
    search_fields: ClassVar[list] = ["name", "sku", "vendor__email"]
    readonly_fields: ClassVar[list] = ["id", "created_at", "updated_at"]
    raw_id_fields: ClassVar[list] = ["vendor"]

    def get_readonly_fields(self, request, obj=None):
        # Existing stock changes go through ProductManager.restore_stock/decrement_stock
        if obj is not None:
            return [*self.readonly_fields, "stock_quantity"]
        return self.readonly_fields

# apps/accounts/admin.py

"""
Django admin configuration for marketplace users.
"""

from typing import ClassVar

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from apps.accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display: ClassVar[tuple] = (
        "email",
        "full_name",
        "user_type",
        "business_name",
        "is_active",
        "date_joined",
    )
    list_filter: ClassVar[tuple] = ("user_type", "is_active", "is_staff")
    search_fields: ClassVar[tuple] = ("email", "first_name", "last_name", "business_name")
    ordering: ClassVar[tuple] = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("email", "username", "password")}),
        ("Personal info", {"fields": ("first_name", "last_name", "phone_number")}),
        ("Marketplace", {"fields": ("user_type", "business_name")}),
        (
            "Permissions",
            {"fields": ("is_active", "is_staff", "is_superuser", "groups")},
        ),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "user_type", "password1", "password2"),
            },
        ),
    )

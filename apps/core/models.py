# apps/core/models.py

"""
Base models for the marketplace.
Provides audit stamping and soft-delete managers shared by every app.
"""

import uuid

from django.conf import settings
from django.db import models

from apps.core.middleware import get_current_user


class AuditStampedModelBase(models.Model):
    """
    Abstract base model that provides audit fields for tracking
    when records are created and updated, and by whom.
    """

    id: models.UUIDField = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    created_at: models.DateTimeField = models.DateTimeField(
        auto_now_add=True, help_text="When this record was created"
    )

    updated_at: models.DateTimeField = models.DateTimeField(
        auto_now=True, help_text="When this record was last updated"
    )

    created_by: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)s_created",
        help_text="User who created this record",
    )

    updated_by: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)s_updated",
        help_text="User who last updated this record",
    )

    is_active: models.BooleanField = models.BooleanField(
        default=True, help_text="Whether this record is active"
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__} {self.id}"

    def save(self, *args, **kwargs):
        """Stamp created_by/updated_by from the request user when not set."""
        user = get_current_user()
        if user is not None and getattr(user, "is_authenticated", False):
            if self._state.adding and self.created_by_id is None:
                self.created_by = user
            self.updated_by = user
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "updated_by" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "updated_by"]
        super().save(*args, **kwargs)


class ActiveManager(models.Manager):
    """
    Custom manager that only returns active (non-soft-deleted) records.
    """

    def get_queryset(self):
        return super().get_queryset().filter(is_active=True)


class AllObjectsManager(models.Manager):
    """
    Manager that returns all objects including soft-deleted ones.
    Useful for admin interfaces or data recovery.
    """

    def get_queryset(self):
        return super().get_queryset()

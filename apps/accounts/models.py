# apps/accounts/models.py

from typing import ClassVar

from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.accounts.managers import RoleManager, UserManager
from apps.core.models import AllObjectsManager, AuditStampedModelBase


class Role(models.TextChoices):
    """Principal role as seen by the order, payment and refund services."""

    CUSTOMER = "customer", _("Customer")
    VENDOR = "vendor", _("Vendor")
    ADMIN = "admin", _("Admin")


class User(AuditStampedModelBase, AbstractUser):
    """
    Marketplace principal. Authentication is email based; the role decides
    which order, payment and refund operations the user may invoke.
    """

    class UserType(models.TextChoices):
        CUSTOMER = "CUSTOMER", _("Customer")
        VENDOR = "VENDOR", _("Vendor")
        ADMIN = "ADMIN", _("Admin")
        STAFF = "STAFF", _("Staff")

    email = models.EmailField(_("email address"), unique=True, db_index=True)
    username = models.CharField(
        _("username"),
        max_length=150,
        unique=True,
        help_text=_("Not used for login. Only for internal reference."),
        blank=True,
        null=True,
    )
    user_type = models.CharField(
        max_length=20,
        choices=UserType.choices,
        default=UserType.CUSTOMER,
        db_index=True,
        help_text=_("The type of user role"),
    )
    phone_number = models.CharField(
        max_length=20,
        blank=True,
        validators=[
            RegexValidator(
                regex=r"^\+?\d{9,15}$",
                message="Phone number must be entered in the format: '+919876543210'. Up to 15 digits allowed.",
            ),
        ],
        help_text=_("Contact phone number"),
    )
    business_name = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Storefront name, vendors only"),
    )

    USERNAME_FIELD: ClassVar[str] = "email"
    REQUIRED_FIELDS: ClassVar[list[str]] = ["username", "first_name", "last_name"]

    objects = UserManager()
    all_objects = AllObjectsManager()
    customers = RoleManager(UserType.CUSTOMER)
    vendors = RoleManager(UserType.VENDOR)

    class Meta:
        verbose_name = _("User")
        verbose_name_plural = _("Users")
        ordering: ClassVar[list[str]] = ["-date_joined"]

    def __str__(self):
        return self.get_full_name() or self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role(self) -> str:
        """Collapse user_type and Django staff flags into customer/vendor/admin."""
        if (
            self.is_superuser
            or self.is_staff
            or self.user_type in (self.UserType.ADMIN, self.UserType.STAFF)
        ):
            return Role.ADMIN
        if self.user_type == self.UserType.VENDOR:
            return Role.VENDOR
        return Role.CUSTOMER

# apps/accounts/managers.py

from django.contrib.auth.base_user import BaseUserManager
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """
    Custom user model manager where email is the unique identifier
    for authentication instead of usernames.
    """

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_("Users must have an email address"))

        email = self.normalize_email(email)
        extra_fields.setdefault("username", email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_vendor(self, email, password=None, business_name="", **extra_fields):
        extra_fields["user_type"] = "VENDOR"
        return self.create_user(
            email, password, business_name=business_name, **extra_fields
        )

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("user_type", "ADMIN")

        if extra_fields.get("is_staff") is not True:
            raise ValueError(_("Superuser must have is_staff=True."))
        if extra_fields.get("is_superuser") is not True:
            raise ValueError(_("Superuser must have is_superuser=True."))

        return self.create_user(email, password, **extra_fields)


class RoleManager(UserManager):
    """Active users of a single user type."""

    use_in_migrations = False

    def __init__(self, user_type=None):
        super().__init__()
        self.user_type = user_type

    def get_queryset(self):
        queryset = super().get_queryset().filter(is_active=True)
        if self.user_type:
            queryset = queryset.filter(user_type=self.user_type)
        return queryset

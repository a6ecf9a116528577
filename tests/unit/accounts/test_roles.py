# tests/unit/accounts/test_roles.py

from django.test import TestCase

from apps.accounts.models import Role, User
from tests.unit.helpers import make_admin, make_customer, make_vendor


class RoleTests(TestCase):
    def test_user_types_map_to_roles(self):
        self.assertEqual(make_customer().role, Role.CUSTOMER)
        self.assertEqual(make_vendor().role, Role.VENDOR)
        self.assertEqual(make_admin().role, Role.ADMIN)

    def test_staff_flag_and_staff_type_are_admins(self):
        staff = User.objects.create_user("ops@example.com", "pass12345", is_staff=True)
        self.assertEqual(staff.role, Role.ADMIN)
        staff_type = User.objects.create_user(
            "desk@example.com", "pass12345", user_type=User.UserType.STAFF
        )
        self.assertEqual(staff_type.role, Role.ADMIN)

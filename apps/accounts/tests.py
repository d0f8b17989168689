from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from apps.accounts.models import UserRole
from apps.audit.models import AuditLog

User = get_user_model()


class EmployeeManagementTests(APITestCase):
    def setUp(self):
        self.super_admin = User.objects.create_user(username="root", password="root12345", role=UserRole.SUPER_ADMIN)
        self.admin = User.objects.create_user(username="admin", password="admin12345", role=UserRole.ADMIN)
        self.employee = User.objects.create_user(username="employee", password="emp12345", role=UserRole.EMPLOYEE)

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_creates_employee_with_hashed_password(self):
        self.auth_as("admin", "admin12345")

        response = self.client.post(
            "/api/v1/employees/",
            {"username": "new.hire", "password": "Str0ng-pass-123", "role": UserRole.EMPLOYEE},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn("password", response.data)
        self.assertEqual(response.data["created_by_username"], "admin")
        user = User.objects.get(username="new.hire")
        self.assertTrue(user.check_password("Str0ng-pass-123"))
        self.assertTrue(AuditLog.objects.filter(action="employee.create", entity_id=str(user.id)).exists())

    def test_admin_cannot_grant_admin_role(self):
        self.auth_as("admin", "admin12345")

        response = self.client.post(
            "/api/v1/employees/",
            {"username": "sneaky", "password": "Str0ng-pass-123", "role": UserRole.ADMIN},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("role", response.data["fields"])

    def test_admin_lists_only_employees(self):
        self.auth_as("admin", "admin12345")

        response = self.client.get("/api/v1/employees/")
        self.assertEqual([row["username"] for row in response.data["results"]], ["employee"])

        self.auth_as("root", "root12345")
        response = self.client.get("/api/v1/employees/")
        self.assertEqual(response.data["count"], 3)

    def test_password_change_on_update(self):
        self.auth_as("admin", "admin12345")

        response = self.client.patch(
            f"/api/v1/employees/{self.employee.id}/",
            {"password": "An0ther-pass-456"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.employee.refresh_from_db()
        self.assertTrue(self.employee.check_password("An0ther-pass-456"))

    def test_employee_cannot_manage_employees(self):
        self.auth_as("employee", "emp12345")

        response = self.client.get("/api/v1/employees/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_delete_self(self):
        self.auth_as("root", "root12345")

        response = self.client.delete(f"/api/v1/employees/{self.super_admin.id}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(User.objects.filter(pk=self.super_admin.pk).exists())

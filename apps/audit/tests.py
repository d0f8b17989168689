from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.services import record_audit

User = get_user_model()


class ActivityLogTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.employee = User.objects.create_user(username="employee", password="emp123", role="EMPLOYEE")
        record_audit(actor=self.admin, action="platform.create", entity_type="platform", entity_id="p-1")
        record_audit(actor=self.employee, action="order.create", entity_type="order", entity_id="o-1")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_filters_activity_log(self):
        self.auth_as("admin", "admin123")

        response = self.client.get("/api/v1/activity-log/?entity_type=order")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["action"], "order.create")

        response = self.client.get(f"/api/v1/activity-log/?actor={self.admin.id}")
        self.assertEqual([row["entity_id"] for row in response.data["results"]], ["p-1"])

    def test_employee_cannot_read_activity_log(self):
        self.auth_as("employee", "emp123")

        response = self.client.get("/api/v1/activity-log/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "permission_denied")

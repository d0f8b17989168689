from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer
from apps.issues.models import CustomerIssue, IssuePriority, IssueStatus, IssueType

User = get_user_model()


class CustomerIssueTests(APITestCase):
    def setUp(self):
        self.employee = User.objects.create_user(username="employee", password="emp123", role="EMPLOYEE")
        self.customer = Customer.objects.create(name="Acme")
        self.other_customer = Customer.objects.create(name="Beta")

    def auth_as_employee(self):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": "employee", "password": "emp123"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def create_issue(self, **overrides):
        payload = {
            "customer": str(self.customer.id),
            "title": "Coins not delivered",
            "description": "Customer reports the coins never arrived.",
            "priority": IssuePriority.HIGH,
            "issue_type": IssueType.COMPLAINT,
        }
        payload.update(overrides)
        return self.client.post("/api/v1/issues/", payload, format="json")

    def test_create_issue_sets_creator_and_is_audited(self):
        self.auth_as_employee()

        response = self.create_issue()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], IssueStatus.OPEN)
        self.assertEqual(response.data["created_by_username"], "employee")
        self.assertIsNone(response.data["resolved_at"])
        self.assertTrue(AuditLog.objects.filter(action="issue.create", entity_id=response.data["id"]).exists())

    def test_resolving_stamps_and_reopening_clears_resolved_at(self):
        self.auth_as_employee()
        issue_id = self.create_issue().data["id"]

        resolved = self.client.patch(f"/api/v1/issues/{issue_id}/", {"status": IssueStatus.RESOLVED}, format="json")
        self.assertEqual(resolved.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(resolved.data["resolved_at"])

        reopened = self.client.patch(f"/api/v1/issues/{issue_id}/", {"status": IssueStatus.IN_PROGRESS}, format="json")
        self.assertIsNone(reopened.data["resolved_at"])

    def test_comments_are_listed_on_detail(self):
        self.auth_as_employee()
        issue_id = self.create_issue().data["id"]

        response = self.client.post(
            f"/api/v1/issues/{issue_id}/comments/",
            {"comment": "Called the customer.", "is_internal": True},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        detail = self.client.get(f"/api/v1/issues/{issue_id}/")
        self.assertEqual([c["comment"] for c in detail.data["comments"]], ["Called the customer."])
        self.assertTrue(detail.data["comments"][0]["is_internal"])

    def test_filters_and_analytics(self):
        now = timezone.now()
        resolved = CustomerIssue.objects.create(
            customer=self.customer,
            title="Slow delivery",
            description="-",
            priority=IssuePriority.LOW,
            status=IssueStatus.RESOLVED,
            issue_type=IssueType.COMPLAINT,
        )
        CustomerIssue.objects.filter(pk=resolved.pk).update(created_at=now - timedelta(hours=6), resolved_at=now)
        CustomerIssue.objects.create(
            customer=self.other_customer,
            title="Refund",
            description="-",
            priority=IssuePriority.CRITICAL,
            issue_type=IssueType.REFUND_REQUEST,
        )
        self.auth_as_employee()

        filtered = self.client.get(f"/api/v1/issues/?customer={self.customer.id}")
        self.assertEqual(filtered.data["count"], 1)

        analytics = self.client.get("/api/v1/issues/analytics/")
        self.assertEqual(analytics.status_code, status.HTTP_200_OK)
        self.assertEqual(analytics.data["total"], 2)
        self.assertEqual(analytics.data["open"], 1)
        self.assertEqual(analytics.data["by_status"], {IssueStatus.OPEN: 1, IssueStatus.RESOLVED: 1})
        self.assertEqual(analytics.data["by_priority"][IssuePriority.CRITICAL], 1)
        self.assertEqual(analytics.data["average_resolution_hours"], 6.0)

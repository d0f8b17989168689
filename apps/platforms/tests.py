from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.platforms import ledger
from apps.platforms.models import Platform, PlatformLifecycle, PurchaseHistory

User = get_user_model()


class InventoryLedgerTests(TestCase):
    def setUp(self):
        self.platform = Platform.objects.create(
            platform="Gold Coins",
            account_type="Standard",
            inventory=8,
            cost_price=Decimal("2.00"),
        )

    def test_second_decrement_fails_when_stock_is_insufficient_for_both(self):
        self.assertEqual(ledger.decrement(self.platform.id, 5), 3)

        with self.assertRaises(ledger.InsufficientInventory) as ctx:
            ledger.decrement(self.platform.id, 5)

        self.assertEqual(ctx.exception.fields["requested"], 5)
        self.assertEqual(ctx.exception.fields["available"], 3)
        self.platform.refresh_from_db()
        self.assertEqual(self.platform.inventory, 3)

    def test_decrement_rejects_deleted_platform(self):
        self.platform.soft_delete()

        with self.assertRaises(ledger.PlatformUnavailable):
            ledger.decrement(self.platform.id, 1)

    def test_decrement_rejects_non_positive_amount(self):
        with self.assertRaises(ValueError):
            ledger.decrement(self.platform.id, 0)

    def test_restock_adds_units_without_purchase_record(self):
        self.assertEqual(ledger.restock(self.platform.id, 4), 12)
        self.assertFalse(PurchaseHistory.objects.exists())

    def test_increment_records_previous_and_new_inventory(self):
        purchase = ledger.increment(self.platform.id, 10, cost_per_unit="1.25", supplier="Vendor A")

        self.assertEqual(purchase.previous_inventory, 8)
        self.assertEqual(purchase.new_inventory, 18)
        self.assertEqual(purchase.total_cost, Decimal("12.50"))
        self.assertEqual(ledger.get_snapshot(self.platform.id).inventory, 18)

    def test_snapshot_reports_low_stock(self):
        snapshot = ledger.get_snapshot(self.platform.id)
        self.assertTrue(snapshot.is_low_stock)


class PlatformApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.employee = User.objects.create_user(username="employee", password="emp123", role="EMPLOYEE")
        self.platform = Platform.objects.create(
            platform="Gold Coins",
            account_type="Standard",
            inventory=100,
            cost_price=Decimal("2.00"),
        )
        self.hidden = Platform.objects.create(
            platform="Silver Coins",
            account_type="Premium",
            inventory=5,
            cost_price=Decimal("1.00"),
            is_visible_to_employee=False,
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_soft_delete_hides_platform_until_restored(self):
        self.auth_as("admin", "admin123")

        response = self.client.delete(f"/api/v1/platforms/{self.platform.id}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Platform.objects.filter(pk=self.platform.id).exists())
        self.assertTrue(Platform.all_objects.filter(pk=self.platform.id).exists())

        listing = self.client.get("/api/v1/platforms/")
        self.assertNotIn(str(self.platform.id), [row["id"] for row in listing.data["results"]])

        deleted = self.client.get("/api/v1/platforms/?deleted_only=1")
        self.assertEqual([row["id"] for row in deleted.data["results"]], [str(self.platform.id)])
        self.assertEqual(deleted.data["results"][0]["lifecycle"], PlatformLifecycle.DELETED)

        restored = self.client.post(f"/api/v1/platforms/{self.platform.id}/restore/")
        self.assertEqual(restored.status_code, status.HTTP_200_OK)
        self.assertEqual(restored.data["lifecycle"], PlatformLifecycle.ACTIVE)
        self.assertTrue(AuditLog.objects.filter(action="platform.restore", entity_id=str(self.platform.id)).exists())

    def test_purchase_endpoint_appends_history(self):
        self.auth_as("admin", "admin123")

        response = self.client.post(
            f"/api/v1/platforms/{self.platform.id}/purchase/",
            {"quantity": 20, "cost_per_unit": "1.50", "supplier": "Vendor A"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["previous_inventory"], 100)
        self.assertEqual(response.data["new_inventory"], 120)
        self.assertEqual(response.data["total_cost"], "30.00")

        history = self.client.get(f"/api/v1/platforms/{self.platform.id}/purchase-history/")
        self.assertEqual(history.status_code, status.HTTP_200_OK)
        self.assertEqual(history.data["count"], 1)

    def test_inventory_cannot_be_edited_directly(self):
        self.auth_as("admin", "admin123")

        response = self.client.patch(
            f"/api/v1/platforms/{self.platform.id}/",
            {"inventory": 500},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("inventory", response.data["fields"])

    def test_employee_sees_only_visible_platforms_and_cannot_purchase(self):
        self.auth_as("employee", "emp123")

        listing = self.client.get("/api/v1/platforms/")
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in listing.data["results"]], [str(self.platform.id)])

        response = self.client.post(
            f"/api/v1/platforms/{self.platform.id}/purchase/",
            {"quantity": 1, "cost_per_unit": "1.00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_low_stock_filter(self):
        self.auth_as("admin", "admin123")

        response = self.client.get("/api/v1/platforms/?low_stock=1")
        self.assertEqual([row["id"] for row in response.data["results"]], [str(self.hidden.id)])
        self.assertTrue(response.data["results"][0]["is_low_stock"])

    def test_platforms_require_authentication(self):
        response = self.client.get("/api/v1/platforms/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

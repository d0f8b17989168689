from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer, CustomerUsername, PricingTier
from apps.customers.pricing import SOURCE_BASE_PRICE, SOURCE_TIER, quote_price, resolve_price, select_tier
from apps.platforms.models import Platform

User = get_user_model()


class PriceResolverTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Acme", contact_numbers=["+1 555 0100"])
        self.platform = Platform.objects.create(
            platform="Gold Coins",
            account_type="Standard",
            inventory=100,
            cost_price=Decimal("3.00"),
        )

    def add_tier(self, min_quantity, max_quantity, unit_price, **extra):
        return PricingTier.objects.create(
            customer=self.customer,
            platform=self.platform,
            min_quantity=min_quantity,
            max_quantity=max_quantity,
            unit_price=Decimal(unit_price),
            **extra,
        )

    def test_tier_boundaries(self):
        self.add_tier(1, 10, "5.00")
        self.add_tier(11, None, "4.00")

        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 10), Decimal("5.00"))
        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 11), Decimal("4.00"))
        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 5000), Decimal("4.00"))

    def test_no_tier_returns_none(self):
        self.assertIsNone(resolve_price(self.customer.id, self.platform.id, 5))

        self.add_tier(10, 20, "2.00")
        self.assertIsNone(resolve_price(self.customer.id, self.platform.id, 5))

    def test_overlapping_tiers_narrowest_range_wins(self):
        self.add_tier(1, 20, "5.00")
        self.add_tier(5, 15, "3.00")

        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 10), Decimal("3.00"))
        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 3), Decimal("5.00"))

    def test_overlap_result_does_not_depend_on_fetch_order(self):
        wide = self.add_tier(1, 20, "5.00")
        narrow = self.add_tier(5, 15, "3.00")
        unbounded = self.add_tier(1, None, "6.00")

        for tiers in ([wide, narrow, unbounded], [unbounded, narrow, wide], [narrow, unbounded, wide]):
            self.assertEqual(select_tier(tiers, 10).id, narrow.id)

    def test_equal_width_prefers_default_then_oldest(self):
        first = self.add_tier(1, 10, "5.00")
        default = self.add_tier(1, 10, "4.50", is_default=True)
        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 3), Decimal("4.50"))

        default.delete()
        PricingTier.objects.filter(pk=first.pk).update(created_at=timezone.now() - timedelta(days=1))
        self.add_tier(1, 10, "4.00")
        self.assertEqual(resolve_price(self.customer.id, self.platform.id, 3), Decimal("5.00"))

    def test_quote_falls_back_to_platform_base_price(self):
        quote = quote_price(self.customer.id, self.platform.id, 3)

        self.assertEqual(quote.unit_price, Decimal("3.00"))
        self.assertEqual(quote.source, SOURCE_BASE_PRICE)
        self.assertIsNone(quote.tier_id)

        tier = self.add_tier(1, None, "2.50")
        quote = quote_price(self.customer.id, self.platform.id, 3)
        self.assertEqual(quote.source, SOURCE_TIER)
        self.assertEqual(quote.tier_id, tier.id)


class CustomerApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.employee = User.objects.create_user(username="employee", password="emp123", role="EMPLOYEE")
        self.platform = Platform.objects.create(
            platform="Gold Coins",
            account_type="Standard",
            inventory=100,
            cost_price=Decimal("3.00"),
        )
        self.customer = Customer.objects.create(name="Acme", contact_numbers=["+1 (555) 010-0100"])

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_search_matches_normalized_contact_numbers(self):
        Customer.objects.create(name="Other", contact_numbers=["999"])
        self.auth_as("employee", "emp123")

        response = self.client.get("/api/v1/customers/?q=555-010")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["name"] for row in response.data["results"]], ["Acme"])

    def test_create_customer_with_contact_numbers(self):
        self.auth_as("employee", "emp123")

        response = self.client.post(
            "/api/v1/customers/",
            {"name": "  Beta Corp ", "contact_numbers": ["0123 456", " "]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["name"], "Beta Corp")
        self.assertEqual(response.data["contact_numbers"], ["0123 456"])
        self.assertTrue(AuditLog.objects.filter(action="customer.create", entity_id=response.data["id"]).exists())

    def test_customer_usernames_filter_by_customer(self):
        CustomerUsername.objects.create(customer=self.customer, platform=self.platform, username="acme_gold")
        other = Customer.objects.create(name="Other")
        CustomerUsername.objects.create(customer=other, username="someone")
        self.auth_as("employee", "emp123")

        response = self.client.get(f"/api/v1/customer-usernames/?customer={self.customer.id}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["username"] for row in response.data["results"]], ["acme_gold"])
        self.assertEqual(response.data["results"][0]["platform_name"], "Gold Coins")

    def test_admin_creates_and_deletes_pricing_tier(self):
        self.auth_as("admin", "admin123")

        response = self.client.post(
            "/api/v1/pricing-tiers/",
            {
                "customer": str(self.customer.id),
                "platform": str(self.platform.id),
                "min_quantity": 1,
                "max_quantity": 10,
                "unit_price": "2.50",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        tier_id = response.data["id"]

        deleted = self.client.delete(f"/api/v1/pricing-tiers/{tier_id}/")
        self.assertEqual(deleted.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PricingTier.objects.filter(pk=tier_id).exists())
        self.assertTrue(AuditLog.objects.filter(action="pricing_tier.delete", entity_id=tier_id).exists())

    def test_pricing_tier_rejects_inverted_range(self):
        self.auth_as("admin", "admin123")

        response = self.client.post(
            "/api/v1/pricing-tiers/",
            {
                "customer": str(self.customer.id),
                "platform": str(self.platform.id),
                "min_quantity": 10,
                "max_quantity": 5,
                "unit_price": "2.50",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid")
        self.assertIn("max_quantity", response.data["fields"])

    def test_pricing_tiers_have_no_update_endpoint(self):
        tier = PricingTier.objects.create(
            customer=self.customer,
            platform=self.platform,
            unit_price=Decimal("2.50"),
        )
        self.auth_as("admin", "admin123")

        response = self.client.patch(f"/api/v1/pricing-tiers/{tier.id}/", {"unit_price": "1.00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_employee_cannot_create_pricing_tier(self):
        self.auth_as("employee", "emp123")

        response = self.client.post(
            "/api/v1/pricing-tiers/",
            {"customer": str(self.customer.id), "platform": str(self.platform.id), "unit_price": "1.00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_quote_endpoint_uses_tier_and_rejects_zero_quantity(self):
        PricingTier.objects.create(
            customer=self.customer,
            platform=self.platform,
            min_quantity=1,
            max_quantity=10,
            unit_price=Decimal("2.50"),
        )
        self.auth_as("employee", "emp123")

        response = self.client.get(
            f"/api/v1/pricing/quote/?customer={self.customer.id}&platform={self.platform.id}&quantity=4"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["unit_price"], "2.50")
        self.assertEqual(response.data["source"], "tier")
        self.assertEqual(response.data["total_price"], "10.00")

        rejected = self.client.get(
            f"/api/v1/pricing/quote/?customer={self.customer.id}&platform={self.platform.id}&quantity=0"
        )
        self.assertEqual(rejected.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("quantity", rejected.data["fields"])

from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase


class HealthTests(APITestCase):
    @override_settings(DATABASE_URL_RAW="", SECRET_KEY="unsafe-dev-key")
    def test_missing_configuration_is_reported_without_failing(self):
        response = self.client.get("/health/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "degraded")
        self.assertEqual(response.data["checks"]["database"]["status"], "healthy")
        self.assertTrue(any("DATABASE_URL" in warning for warning in response.data["warnings"]))
        self.assertTrue(any("DJANGO_SECRET_KEY" in warning for warning in response.data["warnings"]))

    @override_settings(DATABASE_URL_RAW="not-a-url", DATABASE_URL_ERROR="unknown scheme", SECRET_KEY="a-real-secret")
    def test_invalid_database_url_is_a_warning(self):
        response = self.client.get("/health/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["warnings"]), 1)
        self.assertIn("invalid", response.data["warnings"][0])

    @override_settings(
        DATABASE_URL_RAW="postgres://user:pass@db:5432/coinstock",
        DATABASE_URL_ERROR="",
        SECRET_KEY="a-real-secret",
    )
    def test_complete_configuration_is_healthy(self):
        response = self.client.get("/health/")

        self.assertEqual(response.data["status"], "healthy")
        self.assertEqual(response.data["warnings"], [])

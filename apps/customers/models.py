import re
import uuid

from django.core.exceptions import ValidationError
from django.db import models


def normalize_phone(value):
    raw = str(value or "").strip()
    normalized = re.sub(r"\D+", "", raw)
    return normalized or raw


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    contact_numbers = models.JSONField(default=list, blank=True)
    contact_numbers_normalized = models.CharField(max_length=500, blank=True, editable=False)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="customer_name_idx"),
        ]

    def clean(self):
        if not self.name:
            raise ValidationError({"name": "name is required"})
        if not isinstance(self.contact_numbers, list):
            raise ValidationError({"contact_numbers": "contact_numbers must be a list"})

    def save(self, *args, **kwargs):
        self.name = str(self.name or "").strip()
        self.contact_numbers = [str(number).strip() for number in self.contact_numbers or [] if str(number).strip()]
        self.contact_numbers_normalized = " ".join(normalize_phone(number) for number in self.contact_numbers)
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class CustomerUsername(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="usernames")
    platform = models.ForeignKey(
        "platforms.Platform",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="customer_usernames",
    )
    username = models.CharField(max_length=150)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["username"]
        indexes = [
            models.Index(fields=["customer", "platform"], name="custusername_cust_plat_idx"),
        ]

    def __str__(self):
        return self.username


class PricingTier(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="pricing_tiers")
    platform = models.ForeignKey("platforms.Platform", on_delete=models.CASCADE, related_name="pricing_tiers")
    min_quantity = models.PositiveIntegerField(default=1)
    max_quantity = models.PositiveIntegerField(null=True, blank=True)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["customer", "platform", "min_quantity"]
        indexes = [
            models.Index(fields=["customer", "platform"], name="pricingtier_cust_plat_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(min_quantity__gte=1), name="pricingtier_min_qty_gte_one"),
            models.CheckConstraint(
                condition=models.Q(max_quantity__isnull=True) | models.Q(max_quantity__gte=models.F("min_quantity")),
                name="pricingtier_max_gte_min",
            ),
            models.CheckConstraint(condition=models.Q(unit_price__gte=0), name="pricingtier_unit_price_gte_zero"),
        ]

    def __str__(self):
        upper = self.max_quantity if self.max_quantity is not None else "+"
        return f"{self.customer} / {self.platform} [{self.min_quantity}, {upper}] {self.unit_price}"

    def matches(self, quantity):
        return quantity >= self.min_quantity and (self.max_quantity is None or quantity <= self.max_quantity)

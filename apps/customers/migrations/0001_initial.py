import django.db.models.deletion
import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("platforms", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("contact_numbers", models.JSONField(blank=True, default=list)),
                ("contact_numbers_normalized", models.CharField(blank=True, editable=False, max_length=500)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["name"], name="customer_name_idx")],
            },
        ),
        migrations.CreateModel(
            name="CustomerUsername",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("username", models.CharField(max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="usernames",
                        to="customers.customer",
                    ),
                ),
                (
                    "platform",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="customer_usernames",
                        to="platforms.platform",
                    ),
                ),
            ],
            options={
                "ordering": ["username"],
                "indexes": [models.Index(fields=["customer", "platform"], name="custusername_cust_plat_idx")],
            },
        ),
        migrations.CreateModel(
            name="PricingTier",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("min_quantity", models.PositiveIntegerField(default=1)),
                ("max_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("is_default", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pricing_tiers",
                        to="customers.customer",
                    ),
                ),
                (
                    "platform",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pricing_tiers",
                        to="platforms.platform",
                    ),
                ),
            ],
            options={
                "ordering": ["customer", "platform", "min_quantity"],
                "indexes": [models.Index(fields=["customer", "platform"], name="pricingtier_cust_plat_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(min_quantity__gte=1), name="pricingtier_min_qty_gte_one"),
                    models.CheckConstraint(
                        condition=models.Q(max_quantity__isnull=True) | models.Q(max_quantity__gte=models.F("min_quantity")),
                        name="pricingtier_max_gte_min",
                    ),
                    models.CheckConstraint(condition=models.Q(unit_price__gte=0), name="pricingtier_unit_price_gte_zero"),
                ],
            },
        ),
    ]

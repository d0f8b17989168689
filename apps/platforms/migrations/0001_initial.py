import django.db.models.deletion
import uuid

import apps.platforms.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Platform",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("platform", models.CharField(db_index=True, max_length=100)),
                ("account_type", models.CharField(max_length=100)),
                ("inventory", models.IntegerField(default=0)),
                ("cost_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("low_stock_alert", models.PositiveIntegerField(default=apps.platforms.models.default_low_stock_alert)),
                ("is_visible_to_employee", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["platform", "account_type"],
                "base_manager_name": "all_objects",
                "indexes": [models.Index(fields=["deleted_at", "platform"], name="platform_deleted_name_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(inventory__gte=0), name="platform_inventory_gte_zero"),
                    models.CheckConstraint(condition=models.Q(cost_price__gte=0), name="platform_cost_price_gte_zero"),
                    models.CheckConstraint(condition=models.Q(low_stock_alert__gte=1), name="platform_low_stock_gte_one"),
                ],
            },
            managers=[
                ("objects", apps.platforms.models.ActivePlatformManager()),
                ("all_objects", apps.platforms.models.PlatformManager()),
            ],
        ),
        migrations.CreateModel(
            name="PurchaseHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("cost_per_unit", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total_cost", models.DecimalField(decimal_places=2, max_digits=14)),
                ("supplier", models.CharField(blank=True, max_length=120)),
                ("notes", models.CharField(blank=True, max_length=500)),
                ("previous_inventory", models.PositiveIntegerField()),
                ("new_inventory", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "platform",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="platforms.platform",
                    ),
                ),
                (
                    "purchased_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "purchase history",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["platform", "created_at"], name="purchase_platform_created_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="purchase_history_qty_gt_zero"),
                ],
            },
        ),
    ]

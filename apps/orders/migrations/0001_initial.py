import django.core.serializers.json
import django.db.models.deletion
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("customers", "0001_initial"),
        ("platforms", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_number", models.CharField(max_length=32, unique=True)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("Cash", "Cash"), ("Crypto", "Crypto"), ("Bank Transfer", "Bank Transfer")],
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("fulfilled", "Fulfilled"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "commit_status",
                    models.CharField(
                        choices=[
                            ("HEADER_CREATED", "Header created"),
                            ("ITEMS_CREATED", "Items created"),
                            ("PAYMENT_RECORDED", "Payment recorded"),
                            ("COMMITTED", "Committed"),
                            ("ABANDONED", "Abandoned"),
                        ],
                        default="HEADER_CREATED",
                        max_length=20,
                    ),
                ),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("discount_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("notes", models.TextField(blank=True)),
                ("invoice_url", models.URLField(blank=True, max_length=500)),
                ("idempotency_key", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                (
                    "commit_payload",
                    models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder),
                ),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="customers.customer",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "verified_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders_verified",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
                    models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
                    models.Index(fields=["commit_status"], name="order_commit_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(discount_amount__gte=0), name="order_discount_gte_zero"),
                    models.CheckConstraint(condition=models.Q(total_amount__gte=0), name="order_total_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=14)),
                ("line_number", models.PositiveIntegerField(default=0)),
                ("username", models.CharField(blank=True, max_length=150)),
                ("inventory_applied", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
                (
                    "platform",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="platforms.platform",
                    ),
                ),
            ],
            options={
                "ordering": ["line_number", "created_at"],
                "indexes": [models.Index(fields=["platform", "order"], name="orderitem_platform_order_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gte=1), name="orderitem_qty_gte_one"),
                    models.CheckConstraint(condition=models.Q(unit_price__gte=0), name="orderitem_unit_price_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentDetail",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("Cash", "Cash"), ("Crypto", "Crypto"), ("Bank Transfer", "Bank Transfer")],
                        max_length=20,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("currency", models.CharField(default="USD", max_length=10)),
                ("notes", models.TextField(blank=True)),
                (
                    "crypto_currency",
                    models.CharField(blank=True, choices=[("USDT", "USDT"), ("BTC", "BTC"), ("USDC", "USDC")], max_length=10),
                ),
                (
                    "crypto_network",
                    models.CharField(
                        blank=True,
                        choices=[("TRC20", "TRC20"), ("BEP20", "BEP20"), ("Bitcoin", "Bitcoin")],
                        max_length=10,
                    ),
                ),
                ("crypto_username", models.CharField(blank=True, max_length=150)),
                ("crypto_wallet_address", models.CharField(blank=True, max_length=255)),
                ("crypto_transaction_hash", models.CharField(blank=True, max_length=255)),
                ("bank_transaction_reference", models.CharField(blank=True, max_length=150)),
                ("bank_sender_name", models.CharField(blank=True, max_length=150)),
                ("bank_sender_bank", models.CharField(blank=True, max_length=150)),
                ("bank_transaction_time", models.DateTimeField(blank=True, null=True)),
                ("bank_amount_in_currency", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("bank_exchange_rate", models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True)),
                ("cash_received_by", models.CharField(blank=True, max_length=150)),
                ("cash_receipt_number", models.CharField(blank=True, max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_detail",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["payment_method"], name="payment_detail_method_idx")],
            },
        ),
    ]

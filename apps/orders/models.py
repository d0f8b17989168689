import uuid
from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    FULFILLED = "fulfilled", "Fulfilled"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    REPLACEMENT = "replacement", "Replacement"


class CommitStatus(models.TextChoices):
    HEADER_CREATED = "HEADER_CREATED", "Header created"
    ITEMS_CREATED = "ITEMS_CREATED", "Items created"
    PAYMENT_RECORDED = "PAYMENT_RECORDED", "Payment recorded"
    COMMITTED = "COMMITTED", "Committed"
    ABANDONED = "ABANDONED", "Abandoned"


class PaymentMethod(models.TextChoices):
    CASH = "Cash", "Cash"
    CRYPTO = "Crypto", "Crypto"
    BANK_TRANSFER = "Bank Transfer", "Bank Transfer"


class CryptoCurrency(models.TextChoices):
    USDT = "USDT", "USDT"
    BTC = "BTC", "BTC"
    USDC = "USDC", "USDC"


class CryptoNetwork(models.TextChoices):
    TRC20 = "TRC20", "TRC20"
    BEP20 = "BEP20", "BEP20"
    BITCOIN = "Bitcoin", "Bitcoin"


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True)
    customer = models.ForeignKey(
        "customers.Customer",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING)
    commit_status = models.CharField(max_length=20, choices=CommitStatus.choices, default=CommitStatus.HEADER_CREATED)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True)
    invoice_url = models.URLField(max_length=500, blank=True)
    idempotency_key = models.CharField(max_length=100, null=True, blank=True, unique=True)
    commit_payload = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders_created",
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders_verified",
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
            models.Index(fields=["commit_status"], name="order_commit_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(discount_amount__gte=0), name="order_discount_gte_zero"),
            models.CheckConstraint(condition=models.Q(total_amount__gte=0), name="order_total_gte_zero"),
        ]

    def __str__(self):
        return self.order_number

    @property
    def is_committed(self):
        return self.commit_status == CommitStatus.COMMITTED


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    platform = models.ForeignKey("platforms.Platform", on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=14, decimal_places=2)
    line_number = models.PositiveIntegerField(default=0)
    username = models.CharField(max_length=150, blank=True)
    inventory_applied = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["line_number", "created_at"]
        indexes = [
            models.Index(fields=["platform", "order"], name="orderitem_platform_order_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="orderitem_qty_gte_one"),
            models.CheckConstraint(condition=models.Q(unit_price__gte=0), name="orderitem_unit_price_gte_zero"),
        ]

    def save(self, *args, **kwargs):
        self.total_price = (Decimal(self.quantity) * Decimal(self.unit_price)).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)


class PaymentDetail(models.Model):
    """Payment record for an order. Which columns are filled depends on ``payment_method``."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name="payment_detail")
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=10, default="USD")
    notes = models.TextField(blank=True)

    crypto_currency = models.CharField(max_length=10, choices=CryptoCurrency.choices, blank=True)
    crypto_network = models.CharField(max_length=10, choices=CryptoNetwork.choices, blank=True)
    crypto_username = models.CharField(max_length=150, blank=True)
    crypto_wallet_address = models.CharField(max_length=255, blank=True)
    crypto_transaction_hash = models.CharField(max_length=255, blank=True)

    bank_transaction_reference = models.CharField(max_length=150, blank=True)
    bank_sender_name = models.CharField(max_length=150, blank=True)
    bank_sender_bank = models.CharField(max_length=150, blank=True)
    bank_transaction_time = models.DateTimeField(null=True, blank=True)
    bank_amount_in_currency = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    bank_exchange_rate = models.DecimalField(max_digits=18, decimal_places=6, null=True, blank=True)

    cash_received_by = models.CharField(max_length=150, blank=True)
    cash_receipt_number = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["payment_method"], name="payment_detail_method_idx"),
        ]

    def __str__(self):
        return f"{self.payment_method} {self.amount} {self.currency}"


class AdjustmentType(models.TextChoices):
    REFUND = "refund", "Refund"
    REPLACEMENT = "replacement", "Replacement"


class RefundReplacement(models.Model):
    """Append-only record of a refund or replacement processed on an order."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="refunds_replacements")
    type = models.CharField(max_length=20, choices=AdjustmentType.choices)
    reason = models.CharField(max_length=500, blank=True)
    notes = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="refunds_replacements_processed",
    )
    processed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["processed_at"]
        indexes = [
            models.Index(fields=["order", "processed_at"], name="refund_repl_order_idx"),
            models.Index(fields=["type", "processed_at"], name="refund_repl_type_idx"),
        ]

    def __str__(self):
        return f"{self.type} {self.order_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Refund and replacement records cannot be changed.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Refund and replacement records cannot be deleted.")

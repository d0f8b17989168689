import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class PlatformLifecycle(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    DELETED = "DELETED", "Deleted"


class PlatformQuerySet(models.QuerySet):
    def active(self):
        return self.filter(deleted_at__isnull=True)

    def deleted(self):
        return self.filter(deleted_at__isnull=False)

    def low_stock(self):
        return self.filter(inventory__lte=models.F("low_stock_alert"))


class PlatformManager(models.Manager.from_queryset(PlatformQuerySet)):
    use_in_migrations = True


class ActivePlatformManager(PlatformManager):
    def get_queryset(self):
        return super().get_queryset().active()


def default_low_stock_alert():
    return settings.LOW_STOCK_ALERT_DEFAULT


class Platform(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    platform = models.CharField(max_length=100, db_index=True)
    account_type = models.CharField(max_length=100)
    inventory = models.IntegerField(default=0)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    low_stock_alert = models.PositiveIntegerField(default=default_low_stock_alert)
    is_visible_to_employee = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = ActivePlatformManager()
    all_objects = PlatformManager()

    class Meta:
        ordering = ["platform", "account_type"]
        base_manager_name = "all_objects"
        indexes = [
            models.Index(fields=["deleted_at", "platform"], name="platform_deleted_name_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(inventory__gte=0), name="platform_inventory_gte_zero"),
            models.CheckConstraint(condition=models.Q(cost_price__gte=0), name="platform_cost_price_gte_zero"),
            models.CheckConstraint(condition=models.Q(low_stock_alert__gte=1), name="platform_low_stock_gte_one"),
        ]

    def __str__(self):
        return f"{self.platform} - {self.account_type}"

    @property
    def lifecycle(self):
        return PlatformLifecycle.DELETED if self.deleted_at else PlatformLifecycle.ACTIVE

    @property
    def is_low_stock(self):
        return self.inventory <= self.low_stock_alert

    def soft_delete(self):
        if self.deleted_at is None:
            self.deleted_at = timezone.now()
            self.save(update_fields=["deleted_at", "updated_at"])

    def restore(self):
        if self.deleted_at is not None:
            self.deleted_at = None
            self.save(update_fields=["deleted_at", "updated_at"])


class PurchaseHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    platform = models.ForeignKey(Platform, on_delete=models.PROTECT, related_name="purchases")
    quantity = models.PositiveIntegerField()
    cost_per_unit = models.DecimalField(max_digits=12, decimal_places=2)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2)
    supplier = models.CharField(max_length=120, blank=True)
    notes = models.CharField(max_length=500, blank=True)
    previous_inventory = models.PositiveIntegerField()
    new_inventory = models.PositiveIntegerField()
    purchased_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="purchases")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "purchase history"
        indexes = [
            models.Index(fields=["platform", "created_at"], name="purchase_platform_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="purchase_history_qty_gt_zero"),
        ]

"""Inventory ledger for platforms.

Stock lives in ``Platform.inventory``. Every mutation here is a single
conditional UPDATE (or runs under a row lock), so two commits racing on the
same platform can never push inventory below zero: the loser gets
``InsufficientInventory`` instead of silently overwriting the winner.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.common.exceptions import DomainConflict
from apps.platforms.models import Platform, PurchaseHistory

logger = logging.getLogger(__name__)


class InsufficientInventory(DomainConflict):
    default_detail = "Not enough inventory for this platform."
    default_code = "insufficient_inventory"


class PlatformUnavailable(DomainConflict):
    default_detail = "The platform does not exist or has been deleted."
    default_code = "platform_unavailable"


@dataclass(frozen=True)
class StockSnapshot:
    platform_id: object
    inventory: int
    cost_price: Decimal
    low_stock_alert: int

    @property
    def is_low_stock(self):
        return self.inventory <= self.low_stock_alert


def get_snapshot(platform_id):
    platform = Platform.objects.filter(pk=platform_id).first()
    if platform is None:
        raise PlatformUnavailable(fields={"platform_id": str(platform_id)})
    return StockSnapshot(
        platform_id=platform.id,
        inventory=platform.inventory,
        cost_price=platform.cost_price,
        low_stock_alert=platform.low_stock_alert,
    )


def _current_inventory(platform_id):
    return Platform.all_objects.filter(pk=platform_id).values_list("inventory", flat=True).first()


def decrement(platform_id, amount):
    """Take ``amount`` units out of stock and return the new inventory."""
    if amount <= 0:
        raise ValueError("amount must be greater than 0")

    updated = Platform.objects.filter(pk=platform_id, inventory__gte=amount).update(
        inventory=F("inventory") - amount,
        updated_at=timezone.now(),
    )
    if not updated:
        if not Platform.objects.filter(pk=platform_id).exists():
            raise PlatformUnavailable(fields={"platform_id": str(platform_id)})
        available = _current_inventory(platform_id)
        logger.warning("Insufficient inventory for platform %s: requested %s, available %s", platform_id, amount, available)
        raise InsufficientInventory(
            detail=f"Requested quantity ({amount}) exceeds available inventory ({available}).",
            fields={"platform_id": str(platform_id), "requested": amount, "available": available},
        )
    return _current_inventory(platform_id)


def restock(platform_id, amount):
    """Put units back (cancellations, refunds, order corrections)."""
    if amount <= 0:
        raise ValueError("amount must be greater than 0")

    updated = Platform.all_objects.filter(pk=platform_id).update(
        inventory=F("inventory") + amount,
        updated_at=timezone.now(),
    )
    if not updated:
        raise PlatformUnavailable(fields={"platform_id": str(platform_id)})
    return _current_inventory(platform_id)


def increment(platform_id, amount, *, cost_per_unit, supplier="", notes="", actor=None):
    """Record a stock purchase and return the PurchaseHistory row."""
    if amount <= 0:
        raise ValueError("amount must be greater than 0")

    cost_per_unit = Decimal(cost_per_unit)
    with transaction.atomic():
        platform = Platform.objects.select_for_update().filter(pk=platform_id).first()
        if platform is None:
            raise PlatformUnavailable(fields={"platform_id": str(platform_id)})
        previous_inventory = platform.inventory
        Platform.objects.filter(pk=platform.pk).update(
            inventory=F("inventory") + amount,
            updated_at=timezone.now(),
        )
        new_inventory = _current_inventory(platform.pk)
        purchase = PurchaseHistory.objects.create(
            platform=platform,
            quantity=amount,
            cost_per_unit=cost_per_unit,
            total_cost=(cost_per_unit * amount).quantize(Decimal("0.01")),
            supplier=supplier or "",
            notes=notes or "",
            previous_inventory=previous_inventory,
            new_inventory=new_inventory,
            purchased_by=actor,
        )
    logger.info("Stock purchase on platform %s: %s -> %s", platform.pk, previous_inventory, new_inventory)
    return purchase

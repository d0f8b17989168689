"""Customer price resolution.

A customer may hold several pricing tiers for the same platform, each
covering a ``[min_quantity, max_quantity]`` range (``max_quantity`` of
``None`` is unbounded). Ranges are allowed to overlap; when they do, the
narrowest matching range wins, then ``is_default``, then the oldest tier,
then the id. The order in which rows come back from the database never
changes the result.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from apps.customers.models import PricingTier
from apps.platforms.models import Platform

logger = logging.getLogger(__name__)

SOURCE_TIER = "tier"
SOURCE_BASE_PRICE = "base_price"


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    source: str
    tier_id: object = None


def _tier_sort_key(tier):
    width = float("inf") if tier.max_quantity is None else tier.max_quantity - tier.min_quantity
    return (width, not tier.is_default, tier.created_at, str(tier.id))


def select_tier(tiers, quantity):
    """Pick the tier that applies to ``quantity`` out of ``tiers``, or None."""
    candidates = [tier for tier in tiers if tier.matches(quantity)]
    if not candidates:
        return None
    return min(candidates, key=_tier_sort_key)


def resolve_tier(customer_id, platform_id, quantity):
    tiers = PricingTier.objects.filter(customer_id=customer_id, platform_id=platform_id)
    return select_tier(tiers, quantity)


def resolve_price(customer_id, platform_id, quantity):
    """Unit price for the tuple, or None when no tier covers ``quantity``."""
    tier = resolve_tier(customer_id, platform_id, quantity)
    return tier.unit_price if tier is not None else None


def quote_price(customer_id, platform_id, quantity):
    tier = resolve_tier(customer_id, platform_id, quantity) if customer_id else None
    if tier is not None:
        return PriceQuote(unit_price=tier.unit_price, source=SOURCE_TIER, tier_id=tier.id)

    platform = Platform.objects.get(pk=platform_id)
    logger.debug("No pricing tier for customer %s platform %s qty %s", customer_id, platform_id, quantity)
    return PriceQuote(unit_price=platform.cost_price, source=SOURCE_BASE_PRICE)

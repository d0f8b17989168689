"""Draft order assembly: line items and totals, no persistence."""
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

TWO_PLACES = Decimal("0.01")


def money(value):
    return Decimal(str(value)).quantize(TWO_PLACES)


@dataclass(frozen=True)
class DraftItem:
    platform_id: object
    quantity: int
    unit_price: Decimal
    username: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def total_price(self):
        return money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    final_total: Decimal


class OrderComposer:
    """Holds the line items of an order being built.

    The same platform may appear on several lines; they are never merged.
    The discount is clamped into ``[0, subtotal]`` when totals are computed.
    """

    def __init__(self, items=None, discount=Decimal("0.00")):
        self._items = []
        self._discount = money(discount)
        for item in items or []:
            self.add_item(**item)

    @property
    def items(self):
        return list(self._items)

    @property
    def discount(self):
        return self._discount

    def add_item(self, platform_id, quantity, unit_price, username=""):
        item = DraftItem(
            platform_id=platform_id,
            quantity=int(quantity),
            unit_price=money(unit_price),
            username=username or "",
        )
        self._items.append(item)
        return item.id

    def remove_item(self, item_id):
        for index, item in enumerate(self._items):
            if item.id == item_id:
                del self._items[index]
                return item
        raise KeyError(item_id)

    def set_discount(self, amount):
        self._discount = money(amount)

    def compute_totals(self):
        subtotal = money(sum((item.total_price for item in self._items), Decimal("0.00")))
        discount = min(max(self._discount, Decimal("0.00")), subtotal)
        return Totals(subtotal=subtotal, discount=discount, final_total=money(subtotal - discount))

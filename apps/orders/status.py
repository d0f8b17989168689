import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import DomainConflict
from apps.orders.models import AdjustmentType, Order, OrderStatus, RefundReplacement
from apps.platforms import ledger

logger = logging.getLogger(__name__)

TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.VERIFIED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.VERIFIED: {OrderStatus.FULFILLED, OrderStatus.REFUNDED, OrderStatus.REPLACEMENT},
    OrderStatus.FULFILLED: {OrderStatus.REFUNDED, OrderStatus.REPLACEMENT},
    # replacement accounts come from stock the order already consumed
    OrderStatus.REPLACEMENT: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

TERMINAL_STATUSES = {status for status, targets in TRANSITIONS.items() if not targets}
RESTOCK_STATUSES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


class InvalidStatusTransition(DomainConflict):
    default_detail = "This status change is not allowed."
    default_code = "invalid_transition"


class OrderNotCommitted(DomainConflict):
    default_detail = "The order has not finished committing."
    default_code = "order_not_committed"


def can_transition(current, target):
    return target in TRANSITIONS.get(current, set())


def restock_applied_items(order):
    """Return applied stock for every item of ``order`` and clear the flag."""
    restocked = []
    for item in order.items.select_for_update().filter(inventory_applied=True):
        ledger.restock(item.platform_id, item.quantity)
        item.inventory_applied = False
        item.save(update_fields=["inventory_applied"])
        restocked.append({"platform_id": str(item.platform_id), "quantity": item.quantity})
    return restocked


def transition(order, target, actor=None, reason="", notes=""):
    """Move ``order`` to ``target`` or raise InvalidStatusTransition.

    Refunds and replacements also append a RefundReplacement record.
    Returns a dict describing side effects (restocked items, record id) for the audit log.
    """
    target = OrderStatus(target)
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        current = OrderStatus(order.status)
        if not can_transition(current, target):
            raise InvalidStatusTransition(
                detail=f"Cannot move an order from {current} to {target}.",
                fields={"order_id": str(order.id), "from": current, "to": target},
            )
        if not order.is_committed:
            raise OrderNotCommitted(
                fields={"order_id": str(order.id), "commit_status": order.commit_status},
            )

        effects = {"from": current, "to": target}
        update_fields = ["status", "updated_at"]
        order.status = target
        if target == OrderStatus.VERIFIED:
            order.verified_at = timezone.now()
            order.verified_by = actor
            update_fields += ["verified_at", "verified_by"]

        if target in RESTOCK_STATUSES and settings.ORDER_RESTOCK_ON_CANCEL:
            effects["restocked"] = restock_applied_items(order)

        if target == OrderStatus.REFUNDED:
            refunded_amount = order.total_amount
            order.total_amount = 0
            update_fields.append("total_amount")
            payment = getattr(order, "payment_detail", None)
            if payment is not None:
                note = " ".join(part for part in (f"REFUNDED: {reason}." if reason else "REFUNDED.", notes) if part)
                payment.amount = 0
                payment.notes = f"{payment.notes}\n{note}".strip()
                payment.save(update_fields=["amount", "notes"])
            record = RefundReplacement.objects.create(
                order=order,
                type=AdjustmentType.REFUND,
                reason=reason,
                notes=notes,
                amount=refunded_amount,
                processed_by=actor,
            )
            effects.update(reason=reason, notes=notes, record_id=str(record.id))

        if target == OrderStatus.REPLACEMENT:
            record = RefundReplacement.objects.create(
                order=order,
                type=AdjustmentType.REPLACEMENT,
                reason=reason,
                notes=notes,
                processed_by=actor,
            )
            effects.update(reason=reason, notes=notes, record_id=str(record.id))

        order.save(update_fields=update_fields)

    logger.info("Order %s moved from %s to %s", order.order_number, current, target)
    return order, effects

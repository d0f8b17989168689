"""Order commit sequence.

An order is written in four steps, each in its own transaction:

1. header            -> commit_status HEADER_CREATED
2. line items        -> ITEMS_CREATED
3. payment detail    -> PAYMENT_RECORDED
4. stock decrements  -> COMMITTED

A failure in any step leaves the earlier steps in place and raises the
step's ``OrderCommitError`` subclass with the order id and commit status,
so the caller can ``resume_order`` or ``abandon_order`` later. The draft
(items and payment details) is stored on the header so a resume never
needs the original request.
"""
import logging
import time
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction
from rest_framework import serializers, status
from rest_framework.exceptions import APIException

from apps.common.exceptions import DomainConflict
from apps.orders.composer import OrderComposer, money
from apps.orders.models import CommitStatus, Order, OrderItem, OrderStatus, PaymentDetail
from apps.orders.payments import payment_detail_values, validate_payment_details
from apps.orders.status import restock_applied_items
from apps.platforms import ledger

logger = logging.getLogger(__name__)


class OrderCommitError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "The order could not be saved."
    default_code = "order_commit_failed"

    def __init__(self, detail=None, code=None, order=None, fields=None):
        super().__init__(detail=detail, code=code)
        self.order = order
        self.fields = dict(fields or {})
        if order is not None:
            self.fields.setdefault("order_id", str(order.id))
            self.fields.setdefault("order_number", order.order_number)
            self.fields.setdefault("commit_status", order.commit_status)


class OrderHeaderError(OrderCommitError):
    default_detail = "The order header could not be saved. Nothing was stored."
    default_code = "order_header_failed"


class OrderItemsError(OrderCommitError):
    default_detail = "The order was created but its items could not be saved."
    default_code = "order_items_failed"


class PaymentDetailError(OrderCommitError):
    default_detail = "The order and its items were saved but the payment detail could not be."
    default_code = "payment_detail_failed"


class InventoryCommitError(OrderCommitError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The order was saved but inventory could not be updated."
    default_code = "inventory_failed"


class OrderNotRecoverable(DomainConflict):
    default_detail = "This order cannot be resumed or abandoned."
    default_code = "order_not_recoverable"


class OrderNotEditable(DomainConflict):
    default_detail = "Only pending, fully committed orders can be edited."
    default_code = "order_not_editable"


class IdempotencyConflict(DomainConflict):
    default_detail = "This idempotency key was already used for a different order request."
    default_code = "idempotency_conflict"


def generate_order_number():
    stamp = int(time.time() * 1000)
    while Order.objects.filter(order_number=f"ORD-{stamp}").exists():
        stamp += 1
    return f"ORD-{stamp}"


def _draft_payload(composer, customer, payment_method, payment_details):
    return {
        "customer_id": str(customer.pk),
        "discount_amount": str(composer.discount),
        "items": [
            {
                "platform_id": str(item.platform_id),
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
                "username": item.username,
            }
            for item in composer.items
        ],
        "payment_method": payment_method,
        "payment_details": payment_details,
    }


def validate_commit(customer, items, payment_method, payment_details, discount_amount):
    """Check the request before anything is written. Returns (composer, details)."""
    errors = {}
    if customer is None:
        errors["customer"] = "A customer is required."
    if not items:
        errors["items"] = "At least one item is required."
    if errors:
        raise serializers.ValidationError(errors)

    composer = OrderComposer(discount=discount_amount)
    item_errors = []
    for item in items:
        platform = item["platform"]
        platform_id = getattr(platform, "pk", platform)
        quantity = item.get("quantity") or 0
        unit_price = Decimal(str(item.get("unit_price", "0")))
        error = {}
        if quantity < 1:
            error["quantity"] = "Quantity must be >= 1."
        if unit_price < 0:
            error["unit_price"] = "Unit price must be >= 0."
        if not error:
            try:
                snapshot = ledger.get_snapshot(platform_id)
            except ledger.PlatformUnavailable:
                error["platform"] = "Platform does not exist or was deleted."
            else:
                if quantity > snapshot.inventory:
                    error["quantity"] = f"Only {snapshot.inventory} units available."
        item_errors.append(error)
        if not error:
            composer.add_item(platform_id, quantity, unit_price, item.get("username", ""))
    if any(item_errors):
        raise serializers.ValidationError({"items": item_errors})

    details = validate_payment_details(payment_method, payment_details)
    return composer, details


def _insert_header(composer, *, customer, payment_method, payment_details, actor, notes, idempotency_key):
    totals = composer.compute_totals()
    with transaction.atomic():
        return Order.objects.create(
            order_number=generate_order_number(),
            customer=customer,
            payment_method=payment_method,
            status=OrderStatus.PENDING,
            commit_status=CommitStatus.HEADER_CREATED,
            subtotal=totals.subtotal,
            discount_amount=totals.discount,
            total_amount=totals.final_total,
            notes=notes or "",
            idempotency_key=idempotency_key or None,
            commit_payload=_draft_payload(composer, customer, payment_method, payment_details),
            created_by=actor,
        )


def _insert_items(order):
    with transaction.atomic():
        if not order.items.exists():
            for line_number, row in enumerate(order.commit_payload.get("items", []), start=1):
                OrderItem.objects.create(
                    order=order,
                    line_number=line_number,
                    platform_id=row["platform_id"],
                    quantity=row["quantity"],
                    unit_price=Decimal(row["unit_price"]),
                    username=row.get("username", ""),
                )
        order.commit_status = CommitStatus.ITEMS_CREATED
        order.save(update_fields=["commit_status", "updated_at"])


def _insert_payment_detail(order):
    payload = order.commit_payload
    details = validate_payment_details(payload["payment_method"], payload.get("payment_details"))
    with transaction.atomic():
        PaymentDetail.objects.update_or_create(
            order=order,
            defaults=payment_detail_values(payload["payment_method"], details, order.total_amount),
        )
        order.commit_status = CommitStatus.PAYMENT_RECORDED
        order.save(update_fields=["commit_status", "updated_at"])


def _apply_inventory(order):
    for item in order.items.filter(inventory_applied=False).order_by("line_number"):
        with transaction.atomic():
            ledger.decrement(item.platform_id, item.quantity)
            item.inventory_applied = True
            item.save(update_fields=["inventory_applied"])
    order.commit_status = CommitStatus.COMMITTED
    order.save(update_fields=["commit_status", "updated_at"])


def _run_from(order):
    """Run whatever steps remain for ``order`` given its commit status."""
    if order.commit_status == CommitStatus.HEADER_CREATED:
        try:
            _insert_items(order)
        except DatabaseError as exc:
            logger.exception("Order %s: item insert failed", order.order_number)
            raise OrderItemsError(order=order) from exc

    if order.commit_status == CommitStatus.ITEMS_CREATED:
        try:
            _insert_payment_detail(order)
        except DatabaseError as exc:
            logger.exception("Order %s: payment detail insert failed", order.order_number)
            raise PaymentDetailError(order=order) from exc

    if order.commit_status == CommitStatus.PAYMENT_RECORDED:
        try:
            _apply_inventory(order)
        except (ledger.InsufficientInventory, ledger.PlatformUnavailable) as exc:
            logger.warning("Order %s: inventory step failed: %s", order.order_number, exc.detail)
            raise InventoryCommitError(detail=exc.detail, order=order, fields=exc.fields) from exc
        except DatabaseError as exc:
            logger.exception("Order %s: inventory step failed", order.order_number)
            raise InventoryCommitError(order=order) from exc
    return order


def _matches_draft(order, customer, items, payment_method, discount_amount):
    payload = order.commit_payload or {}
    requested = [
        (
            str(getattr(item["platform"], "pk", item["platform"])),
            int(item.get("quantity") or 0),
            str(money(item.get("unit_price", "0"))),
            item.get("username", "") or "",
        )
        for item in items
    ]
    stored = [
        (row["platform_id"], row["quantity"], row["unit_price"], row.get("username", ""))
        for row in payload.get("items", [])
    ]
    return (
        requested == stored
        and str(getattr(customer, "pk", customer)) == payload.get("customer_id")
        and payment_method == payload.get("payment_method")
        and str(money(discount_amount)) == payload.get("discount_amount")
    )


def find_replayed_order(idempotency_key, *, actor, customer, items, payment_method, discount_amount):
    """Return the order an earlier identical request created with ``idempotency_key``.

    Returns None when the key is unused. A key used by another user, or with a
    different request body, raises IdempotencyConflict without revealing the order.
    """
    if not idempotency_key:
        return None
    existing = Order.objects.filter(idempotency_key=idempotency_key).first()
    if existing is None:
        return None
    if existing.created_by_id != getattr(actor, "pk", None) or not _matches_draft(
        existing, customer, items, payment_method, discount_amount
    ):
        logger.warning("Idempotency key %s reused with a different request", idempotency_key)
        raise IdempotencyConflict(fields={"idempotency_key": idempotency_key})
    logger.info("Order %s: replayed idempotency key", existing.order_number)
    return resume_order(existing)


def commit_order(
    customer,
    items,
    payment_method,
    payment_details,
    discount_amount,
    actor,
    notes="",
    idempotency_key=None,
):
    """Validate and persist an order. Returns the committed Order."""
    request = {
        "actor": actor,
        "customer": customer,
        "items": items,
        "payment_method": payment_method,
        "discount_amount": discount_amount,
    }
    replayed = find_replayed_order(idempotency_key, **request)
    if replayed is not None:
        return replayed

    composer, details = validate_commit(customer, items, payment_method, payment_details, discount_amount)

    try:
        order = _insert_header(
            composer,
            customer=customer,
            payment_method=payment_method,
            payment_details=details,
            actor=actor,
            notes=notes,
            idempotency_key=idempotency_key,
        )
    except IntegrityError as exc:
        replayed = find_replayed_order(idempotency_key, **request)
        if replayed is not None:
            return replayed
        logger.exception("Order header insert failed")
        raise OrderHeaderError() from exc
    except DatabaseError as exc:
        logger.exception("Order header insert failed")
        raise OrderHeaderError() from exc

    logger.info("Order %s: header created", order.order_number)
    return _run_from(order)


def resume_order(order):
    """Finish the remaining steps of a partially committed order."""
    order = Order.objects.get(pk=order.pk)
    if order.commit_status == CommitStatus.COMMITTED:
        return order
    if order.commit_status == CommitStatus.ABANDONED:
        raise OrderNotRecoverable(
            detail="The order was abandoned.",
            fields={"order_id": str(order.id), "commit_status": order.commit_status},
        )
    logger.info("Order %s: resuming from %s", order.order_number, order.commit_status)
    return _run_from(order)


def abandon_order(order):
    """Undo a partially committed order: restock applied items and cancel it."""
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.commit_status in {CommitStatus.COMMITTED, CommitStatus.ABANDONED}:
            raise OrderNotRecoverable(
                fields={"order_id": str(order.id), "commit_status": order.commit_status},
            )
        restocked = restock_applied_items(order)
        order.status = OrderStatus.CANCELLED
        order.commit_status = CommitStatus.ABANDONED
        order.save(update_fields=["status", "commit_status", "updated_at"])
    logger.warning("Order %s: abandoned, %s item(s) restocked", order.order_number, len(restocked))
    return order, restocked


def edit_order(order, *, items=None, discount_amount=None, payment_method=None, payment_details=None, **changes):
    """Correct a pending order. Item changes reconcile stock in the same transaction."""
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status != OrderStatus.PENDING or not order.is_committed:
            raise OrderNotEditable(
                fields={"order_id": str(order.id), "status": order.status, "commit_status": order.commit_status},
            )

        for field_name, value in changes.items():
            setattr(order, field_name, value)

        if items is not None:
            restock_applied_items(order)
            order.items.all().delete()
            for line_number, row in enumerate(items, start=1):
                platform = row["platform"]
                item = OrderItem.objects.create(
                    order=order,
                    line_number=line_number,
                    platform_id=getattr(platform, "pk", platform),
                    quantity=row["quantity"],
                    unit_price=money(row["unit_price"]),
                    username=row.get("username", ""),
                )
                ledger.decrement(item.platform_id, item.quantity)
                item.inventory_applied = True
                item.save(update_fields=["inventory_applied"])

        composer = OrderComposer(
            discount=order.discount_amount if discount_amount is None else discount_amount,
        )
        for item in order.items.all():
            composer.add_item(item.platform_id, item.quantity, item.unit_price, item.username)
        totals = composer.compute_totals()
        order.subtotal = totals.subtotal
        order.discount_amount = totals.discount
        order.total_amount = totals.final_total

        payment = PaymentDetail.objects.filter(order=order).first()
        method = payment_method or order.payment_method
        if payment_method is not None or payment_details is not None:
            details = validate_payment_details(method, payment_details)
            PaymentDetail.objects.update_or_create(
                order=order,
                defaults=payment_detail_values(method, details, order.total_amount),
            )
        elif payment is not None:
            payment.amount = order.total_amount
            payment.save(update_fields=["amount"])
        order.payment_method = method
        order.save()

    logger.info("Order %s: edited", order.order_number)
    return order


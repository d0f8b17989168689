from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer, PricingTier
from apps.orders import commit
from apps.orders.composer import OrderComposer
from apps.orders.models import (
    AdjustmentType,
    CommitStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentDetail,
    PaymentMethod,
    RefundReplacement,
)
from apps.orders.status import InvalidStatusTransition, can_transition, transition
from apps.platforms import ledger
from apps.platforms.models import Platform

User = get_user_model()

CASH_DETAILS = {"cash_received_by": "Front desk", "cash_receipt_number": "R-001"}


class OrderComposerTests(TestCase):
    def test_totals_with_discount(self):
        composer = OrderComposer()
        composer.add_item("gold", 4, "2.50")
        composer.set_discount("1.00")

        totals = composer.compute_totals()
        self.assertEqual(totals.subtotal, Decimal("10.00"))
        self.assertEqual(totals.discount, Decimal("1.00"))
        self.assertEqual(totals.final_total, Decimal("9.00"))

    def test_compute_totals_is_idempotent_and_add_remove_restores(self):
        composer = OrderComposer()
        composer.add_item("gold", 3, "1.10")
        before = composer.compute_totals()
        self.assertEqual(composer.compute_totals(), before)

        item_id = composer.add_item("silver", 7, "0.99")
        self.assertNotEqual(composer.compute_totals(), before)
        composer.remove_item(item_id)
        self.assertEqual(composer.compute_totals(), before)

    def test_same_platform_is_not_merged(self):
        composer = OrderComposer()
        composer.add_item("gold", 1, "2.00")
        composer.add_item("gold", 2, "2.00")

        self.assertEqual(len(composer.items), 2)
        self.assertEqual(composer.compute_totals().subtotal, Decimal("6.00"))

    def test_discount_is_clamped_into_subtotal(self):
        composer = OrderComposer()
        composer.add_item("gold", 2, "2.00")

        composer.set_discount("10.00")
        self.assertEqual(composer.compute_totals().final_total, Decimal("0.00"))
        composer.set_discount("-3.00")
        self.assertEqual(composer.compute_totals().discount, Decimal("0.00"))
        self.assertEqual(composer.compute_totals().final_total, Decimal("4.00"))

    def test_remove_unknown_item_raises(self):
        with self.assertRaises(KeyError):
            OrderComposer().remove_item("missing")


class OrderStatusMachineTests(TestCase):
    def test_transition_table(self):
        self.assertTrue(can_transition(OrderStatus.PENDING, OrderStatus.VERIFIED))
        self.assertTrue(can_transition(OrderStatus.PENDING, OrderStatus.CANCELLED))
        self.assertTrue(can_transition(OrderStatus.VERIFIED, OrderStatus.FULFILLED))
        self.assertTrue(can_transition(OrderStatus.FULFILLED, OrderStatus.REFUNDED))
        self.assertFalse(can_transition(OrderStatus.PENDING, OrderStatus.FULFILLED))
        self.assertFalse(can_transition(OrderStatus.VERIFIED, OrderStatus.CANCELLED))
        self.assertFalse(can_transition(OrderStatus.CANCELLED, OrderStatus.PENDING))
        self.assertFalse(can_transition(OrderStatus.REFUNDED, OrderStatus.VERIFIED))
        self.assertTrue(can_transition(OrderStatus.VERIFIED, OrderStatus.REPLACEMENT))
        self.assertTrue(can_transition(OrderStatus.FULFILLED, OrderStatus.REPLACEMENT))
        self.assertTrue(can_transition(OrderStatus.REPLACEMENT, OrderStatus.REFUNDED))
        self.assertFalse(can_transition(OrderStatus.PENDING, OrderStatus.REPLACEMENT))
        self.assertFalse(can_transition(OrderStatus.REPLACEMENT, OrderStatus.CANCELLED))


class OrderCommitTestMixin:
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.employee = User.objects.create_user(username="employee", password="emp123", role="EMPLOYEE")
        self.customer = Customer.objects.create(name="Acme", contact_numbers=["555-0100"])
        self.gold = Platform.objects.create(
            platform="Gold Coins",
            account_type="Standard",
            inventory=100,
            cost_price=Decimal("1.50"),
        )
        self.silver = Platform.objects.create(
            platform="Silver Coins",
            account_type="Standard",
            inventory=3,
            cost_price=Decimal("0.50"),
        )
        PricingTier.objects.create(
            customer=self.customer,
            platform=self.gold,
            min_quantity=1,
            max_quantity=10,
            unit_price=Decimal("2.50"),
        )

    def commit(self, items, **overrides):
        kwargs = {
            "customer": self.customer,
            "items": items,
            "payment_method": PaymentMethod.CASH,
            "payment_details": CASH_DETAILS,
            "discount_amount": Decimal("0.00"),
            "actor": self.admin,
        }
        kwargs.update(overrides)
        return commit.commit_order(**kwargs)


class OrderCommitSequenceTests(OrderCommitTestMixin, TestCase):
    def test_commit_persists_every_step(self):
        order = self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}], discount_amount=Decimal("1.00"))

        self.assertEqual(order.commit_status, CommitStatus.COMMITTED)
        self.assertTrue(order.order_number.startswith("ORD-"))
        self.assertEqual(order.total_amount, Decimal("9.00"))
        self.assertEqual(order.payment_detail.amount, Decimal("9.00"))
        self.assertTrue(order.items.get().inventory_applied)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)

    def test_payment_step_failure_keeps_header_and_items(self):
        with mock.patch("apps.orders.commit._insert_payment_detail", side_effect=DatabaseError("payment insert failed")):
            with self.assertRaises(commit.PaymentDetailError) as ctx:
                self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}])

        error = ctx.exception
        self.assertEqual(error.get_codes(), "payment_detail_failed")
        order = Order.objects.get(pk=error.fields["order_id"])
        self.assertEqual(order.commit_status, CommitStatus.ITEMS_CREATED)
        self.assertEqual(error.fields["commit_status"], CommitStatus.ITEMS_CREATED)
        self.assertEqual(order.items.count(), 1)
        self.assertFalse(PaymentDetail.objects.filter(order=order).exists())
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 100)

    def test_header_failure_is_distinct_and_persists_nothing(self):
        with mock.patch("apps.orders.commit._insert_header", side_effect=DatabaseError("header insert failed")):
            with self.assertRaises(commit.OrderHeaderError) as ctx:
                self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}])

        self.assertEqual(ctx.exception.get_codes(), "order_header_failed")
        self.assertNotIn("order_id", ctx.exception.fields)
        self.assertFalse(Order.objects.exists())

    def test_items_failure_leaves_header_only(self):
        with mock.patch("apps.orders.commit._insert_items", side_effect=DatabaseError("items insert failed")):
            with self.assertRaises(commit.OrderItemsError) as ctx:
                self.commit([{"platform": self.gold, "quantity": 1, "unit_price": Decimal("2.50")}])

        order = Order.objects.get(pk=ctx.exception.fields["order_id"])
        self.assertEqual(order.commit_status, CommitStatus.HEADER_CREATED)
        self.assertFalse(order.items.exists())

    def test_resume_finishes_without_duplicating_rows(self):
        with mock.patch("apps.orders.commit._insert_payment_detail", side_effect=DatabaseError("payment insert failed")):
            with self.assertRaises(commit.PaymentDetailError) as ctx:
                self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}])
        order = Order.objects.get(pk=ctx.exception.fields["order_id"])

        order = commit.resume_order(order)
        self.assertEqual(order.commit_status, CommitStatus.COMMITTED)
        self.assertEqual(order.items.count(), 1)
        self.assertEqual(PaymentDetail.objects.filter(order=order).count(), 1)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)

        commit.resume_order(order)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)

    def test_inventory_failure_keeps_applied_rows_and_abandon_restocks_them(self):
        order = self.commit(
            [
                {"platform": self.gold, "quantity": 5, "unit_price": Decimal("2.50")},
                {"platform": self.silver, "quantity": 3, "unit_price": Decimal("1.00")},
            ]
        )
        self.assertEqual(order.commit_status, CommitStatus.COMMITTED)

        self.silver.refresh_from_db()
        self.assertEqual(self.silver.inventory, 0)
        Platform.objects.filter(pk=self.silver.pk).update(inventory=3)

        # a concurrent order drains silver between validation and the stock step
        original_decrement = commit.ledger.decrement

        def drain_then_decrement(platform_id, amount):
            if platform_id == self.silver.id:
                Platform.objects.filter(pk=self.silver.pk).update(inventory=0)
            return original_decrement(platform_id, amount)

        with mock.patch("apps.orders.commit.ledger.decrement", side_effect=drain_then_decrement):
            with self.assertRaises(commit.InventoryCommitError) as ctx:
                self.commit(
                    [
                        {"platform": self.gold, "quantity": 5, "unit_price": Decimal("2.50")},
                        {"platform": self.silver, "quantity": 3, "unit_price": Decimal("1.00")},
                    ]
                )

        self.assertEqual(ctx.exception.status_code, status.HTTP_409_CONFLICT)
        failed = Order.objects.get(pk=ctx.exception.fields["order_id"])
        self.assertEqual(failed.commit_status, CommitStatus.PAYMENT_RECORDED)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 90)

        abandoned, restocked = commit.abandon_order(failed)
        self.assertEqual(abandoned.status, OrderStatus.CANCELLED)
        self.assertEqual(abandoned.commit_status, CommitStatus.ABANDONED)
        self.assertEqual(restocked, [{"platform_id": str(self.gold.id), "quantity": 5}])
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 95)

        with self.assertRaises(commit.OrderNotRecoverable):
            commit.resume_order(abandoned)

    def test_validation_rejects_quantity_above_snapshot(self):
        from rest_framework.exceptions import ValidationError

        with self.assertRaises(ValidationError):
            self.commit([{"platform": self.silver, "quantity": 4, "unit_price": Decimal("1.00")}])
        self.assertFalse(Order.objects.exists())

    def test_idempotency_key_returns_existing_order(self):
        items = [{"platform": self.gold, "quantity": 2, "unit_price": Decimal("2.50")}]
        first = self.commit(items, idempotency_key="checkout-1")
        second = self.commit(items, idempotency_key="checkout-1")

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Order.objects.count(), 1)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 98)

    def test_idempotency_key_of_another_user_conflicts(self):
        items = [{"platform": self.gold, "quantity": 2, "unit_price": Decimal("2.50")}]
        self.commit(items, idempotency_key="checkout-1")

        with self.assertRaises(commit.IdempotencyConflict) as ctx:
            self.commit(items, idempotency_key="checkout-1", actor=self.employee)

        self.assertEqual(ctx.exception.status_code, status.HTTP_409_CONFLICT)
        self.assertNotIn("order_id", ctx.exception.fields)
        self.assertEqual(Order.objects.count(), 1)

    def test_idempotency_key_with_different_request_conflicts(self):
        self.commit([{"platform": self.gold, "quantity": 2, "unit_price": Decimal("2.50")}], idempotency_key="checkout-1")

        changed_requests = [
            {"items": [{"platform": self.gold, "quantity": 3, "unit_price": Decimal("2.50")}]},
            {"discount_amount": Decimal("1.00")},
            {"customer": Customer.objects.create(name="Other")},
        ]
        for overrides in changed_requests:
            kwargs = {"items": [{"platform": self.gold, "quantity": 2, "unit_price": Decimal("2.50")}]}
            kwargs.update(overrides)
            with self.assertRaises(commit.IdempotencyConflict):
                self.commit(idempotency_key="checkout-1", **kwargs)

        self.assertEqual(Order.objects.count(), 1)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 98)

    def test_concurrent_commits_for_the_same_stock_never_oversell(self):
        bronze = Platform.objects.create(
            platform="Bronze Coins",
            account_type="Standard",
            inventory=8,
            cost_price=Decimal("0.25"),
        )
        items = [{"platform": bronze, "quantity": 5, "unit_price": Decimal("1.00")}]
        # both requests were validated against the same stock level before either decremented
        stale = ledger.StockSnapshot(
            platform_id=bronze.id,
            inventory=8,
            cost_price=bronze.cost_price,
            low_stock_alert=bronze.low_stock_alert,
        )

        with mock.patch("apps.orders.commit.ledger.get_snapshot", return_value=stale):
            first = self.commit(items)
            with self.assertRaises(commit.InventoryCommitError) as ctx:
                self.commit(items)

        self.assertEqual(first.commit_status, CommitStatus.COMMITTED)
        self.assertEqual(ctx.exception.fields["available"], 3)
        second = Order.objects.get(pk=ctx.exception.fields["order_id"])
        self.assertEqual(second.commit_status, CommitStatus.PAYMENT_RECORDED)
        self.assertFalse(second.items.filter(inventory_applied=True).exists())
        bronze.refresh_from_db()
        self.assertEqual(bronze.inventory, 3)

    def test_refund_restocks_and_zeroes_payment(self):
        order = self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}])

        order, effects = transition(
            order,
            OrderStatus.REFUNDED,
            actor=self.admin,
            reason="duplicate charge",
            notes="paid twice at the counter",
        )
        self.assertEqual(order.status, OrderStatus.REFUNDED)
        self.assertEqual(order.total_amount, Decimal("0"))
        payment = PaymentDetail.objects.get(order=order)
        self.assertEqual(payment.amount, Decimal("0.00"))
        self.assertIn("REFUNDED: duplicate charge", payment.notes)
        self.assertIn("paid twice at the counter", payment.notes)
        self.assertEqual(effects["restocked"], [{"platform_id": str(self.gold.id), "quantity": 4}])
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 100)
        self.assertFalse(OrderItem.objects.filter(order=order, inventory_applied=True).exists())

        record = RefundReplacement.objects.get(order=order)
        self.assertEqual(str(record.id), effects["record_id"])
        self.assertEqual(record.type, AdjustmentType.REFUND)
        self.assertEqual(record.reason, "duplicate charge")
        self.assertEqual(record.notes, "paid twice at the counter")
        self.assertEqual(record.amount, Decimal("10.00"))
        self.assertEqual(record.processed_by, self.admin)

        with self.assertRaises(InvalidStatusTransition):
            transition(order, OrderStatus.VERIFIED, actor=self.admin)

    def test_replacement_keeps_inventory_and_is_recorded(self):
        order = self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}])
        order, _ = transition(order, OrderStatus.VERIFIED, actor=self.admin)

        order, effects = transition(
            order,
            OrderStatus.REPLACEMENT,
            actor=self.admin,
            reason="account banned",
            notes="sent new credentials",
        )

        self.assertEqual(order.status, OrderStatus.REPLACEMENT)
        self.assertEqual(order.total_amount, Decimal("10.00"))
        self.assertNotIn("restocked", effects)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)
        record = RefundReplacement.objects.get(order=order)
        self.assertEqual(record.type, AdjustmentType.REPLACEMENT)
        self.assertEqual(record.reason, "account banned")
        self.assertEqual(record.notes, "sent new credentials")
        self.assertIsNone(record.amount)

        with self.assertRaises(ValueError):
            record.save()
        with self.assertRaises(ValueError):
            record.delete()

    @override_settings(ORDER_RESTOCK_ON_CANCEL=False)
    def test_cancel_without_restock_policy_keeps_inventory(self):
        order = self.commit([{"platform": self.gold, "quantity": 4, "unit_price": Decimal("2.50")}])

        transition(order, OrderStatus.CANCELLED, actor=self.admin)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)


class OrderApiTests(OrderCommitTestMixin, APITestCase):
    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def create_order(self, **overrides):
        payload = {
            "customer": str(self.customer.id),
            "items": [{"platform": str(self.gold.id), "quantity": 4}],
            "payment_method": PaymentMethod.CASH,
            "payment_details": CASH_DETAILS,
            "discount_amount": "1.00",
        }
        payload.update(overrides)
        return self.client.post("/api/v1/orders/", payload, format="json")

    def test_acme_gold_coins_scenario(self):
        self.auth_as("employee", "emp123")

        response = self.create_order()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["items"][0]["unit_price"], "2.50")
        self.assertEqual(response.data["subtotal"], "10.00")
        self.assertEqual(response.data["total_amount"], "9.00")
        self.assertEqual(response.data["status"], OrderStatus.PENDING)
        self.assertEqual(response.data["commit_status"], CommitStatus.COMMITTED)
        self.assertEqual(response.data["payment_detail"]["cash_receipt_number"], "R-001")
        self.assertNotIn("crypto_network", response.data["payment_detail"])
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)
        self.assertTrue(AuditLog.objects.filter(action="order.create", entity_id=response.data["id"]).exists())

    def test_discount_above_subtotal_is_rejected(self):
        self.auth_as("employee", "emp123")

        response = self.create_order(discount_amount="50.00")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("discount_amount", response.data["fields"])
        self.assertFalse(Order.objects.exists())

    def test_crypto_details_are_validated_per_variant(self):
        self.auth_as("employee", "emp123")

        response = self.create_order(
            payment_method=PaymentMethod.CRYPTO,
            payment_details={"crypto_currency": "BTC", "crypto_network": "TRC20"},
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("payment_details", response.data["fields"])

        response = self.create_order(
            payment_method=PaymentMethod.CRYPTO,
            payment_details={
                "crypto_currency": "USDT",
                "crypto_network": "TRC20",
                "crypto_wallet_address": "TXYZ",
                "crypto_transaction_hash": "0xabc",
            },
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        detail = response.data["payment_detail"]
        self.assertEqual(detail["crypto_network"], "TRC20")
        self.assertEqual(detail["currency"], "USDT")
        self.assertNotIn("cash_receipt_number", detail)

    def test_payment_failure_response_carries_order_for_recovery(self):
        self.auth_as("admin", "admin123")

        with mock.patch("apps.orders.commit._insert_payment_detail", side_effect=DatabaseError("payment insert failed")):
            response = self.create_order()
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["code"], "payment_detail_failed")
        self.assertEqual(response.data["fields"]["commit_status"], CommitStatus.ITEMS_CREATED)

        order_id = response.data["fields"]["order_id"]
        verify = self.client.post(f"/api/v1/orders/{order_id}/verify/")
        self.assertEqual(verify.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(verify.data["code"], "order_not_committed")

        resumed = self.client.post(f"/api/v1/orders/{order_id}/resume/")
        self.assertEqual(resumed.status_code, status.HTTP_200_OK)
        self.assertEqual(resumed.data["commit_status"], CommitStatus.COMMITTED)

    def test_status_actions_follow_state_machine(self):
        self.auth_as("employee", "emp123")
        order_id = self.create_order().data["id"]

        forbidden = self.client.post(f"/api/v1/orders/{order_id}/verify/")
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)

        self.auth_as("admin", "admin123")
        illegal = self.client.post(f"/api/v1/orders/{order_id}/fulfil/")
        self.assertEqual(illegal.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(illegal.data["code"], "invalid_transition")

        verified = self.client.post(f"/api/v1/orders/{order_id}/verify/")
        self.assertEqual(verified.status_code, status.HTTP_200_OK)
        self.assertEqual(verified.data["status"], OrderStatus.VERIFIED)
        self.assertEqual(verified.data["verified_by_username"], "admin")
        self.assertIsNotNone(verified.data["verified_at"])

        cancel = self.client.post(f"/api/v1/orders/{order_id}/cancel/")
        self.assertEqual(cancel.status_code, status.HTTP_409_CONFLICT)

        fulfilled = self.client.post(f"/api/v1/orders/{order_id}/fulfil/")
        self.assertEqual(fulfilled.data["status"], OrderStatus.FULFILLED)

        refunded = self.client.post(f"/api/v1/orders/{order_id}/refund/", {"reason": "customer request"}, format="json")
        self.assertEqual(refunded.status_code, status.HTTP_200_OK)
        self.assertEqual(refunded.data["status"], OrderStatus.REFUNDED)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 100)

    def test_replacement_and_refund_are_recorded_on_the_order(self):
        self.auth_as("admin", "admin123")
        order_id = self.create_order().data["id"]

        too_early = self.client.post(f"/api/v1/orders/{order_id}/replace/", {"reason": "banned"}, format="json")
        self.assertEqual(too_early.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(too_early.data["code"], "invalid_transition")

        self.client.post(f"/api/v1/orders/{order_id}/verify/")
        missing_reason = self.client.post(f"/api/v1/orders/{order_id}/replace/", {}, format="json")
        self.assertEqual(missing_reason.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("reason", missing_reason.data["fields"])

        replaced = self.client.post(
            f"/api/v1/orders/{order_id}/replace/",
            {"reason": "account banned", "notes": "sent new credentials"},
            format="json",
        )
        self.assertEqual(replaced.status_code, status.HTTP_200_OK)
        self.assertEqual(replaced.data["status"], OrderStatus.REPLACEMENT)
        self.assertEqual(replaced.data["total_amount"], "9.00")
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)

        refunded = self.client.post(
            f"/api/v1/orders/{order_id}/refund/",
            {"reason": "customer gave up", "notes": "refunded in cash"},
            format="json",
        )
        self.assertEqual(refunded.status_code, status.HTTP_200_OK)
        records = refunded.data["refunds_replacements"]
        self.assertEqual([record["type"] for record in records], ["replacement", "refund"])
        self.assertEqual(records[0]["notes"], "sent new credentials")
        self.assertIsNone(records[0]["amount"])
        self.assertEqual(records[1]["notes"], "refunded in cash")
        self.assertEqual(records[1]["amount"], "9.00")
        self.assertEqual(records[1]["processed_by_username"], "admin")
        self.assertIn("refunded in cash", refunded.data["payment_detail"]["notes"])
        self.assertTrue(AuditLog.objects.filter(action="order.replacement", entity_id=order_id).exists())
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 100)

    def test_employee_cannot_process_replacement(self):
        self.auth_as("employee", "emp123")
        order_id = self.create_order().data["id"]

        response = self.client.post(f"/api/v1/orders/{order_id}/replace/", {"reason": "banned"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(RefundReplacement.objects.exists())

    def test_idempotency_key_replay_is_scoped_to_its_creator(self):
        self.auth_as("admin", "admin123")
        created = self.create_order(idempotency_key="k1")
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        self.auth_as("employee", "emp123")
        self.assertEqual(self.client.get(f"/api/v1/orders/{created.data['id']}/").status_code, status.HTTP_404_NOT_FOUND)
        replay = self.create_order(idempotency_key="k1")
        self.assertEqual(replay.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(replay.data["code"], "idempotency_conflict")
        self.assertNotIn("payment_detail", replay.data)
        self.assertNotIn("order_id", replay.data["fields"])

        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(AuditLog.objects.filter(action="order.create").count(), 1)

    def test_idempotency_key_replay_by_creator_returns_order_without_new_audit(self):
        self.auth_as("employee", "emp123")
        created = self.create_order(idempotency_key="k2")

        replay = self.create_order(idempotency_key="k2")
        self.assertEqual(replay.status_code, status.HTTP_200_OK)
        self.assertEqual(replay.data["id"], created.data["id"])
        self.assertEqual(AuditLog.objects.filter(action="order.create").count(), 1)

        changed = self.create_order(idempotency_key="k2", discount_amount="2.00")
        self.assertEqual(changed.status_code, status.HTTP_409_CONFLICT)
        self.gold.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)

    def test_edit_reconciles_inventory(self):
        self.auth_as("admin", "admin123")
        order_id = self.create_order().data["id"]

        response = self.client.patch(
            f"/api/v1/orders/{order_id}/",
            {"items": [{"platform": str(self.gold.id), "quantity": 6}, {"platform": str(self.silver.id), "quantity": 1}]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["subtotal"], "15.50")
        self.assertEqual(response.data["total_amount"], "14.50")
        self.assertEqual(response.data["payment_detail"]["amount"], "14.50")
        self.gold.refresh_from_db()
        self.silver.refresh_from_db()
        self.assertEqual(self.gold.inventory, 94)
        self.assertEqual(self.silver.inventory, 2)

    def test_edit_with_insufficient_stock_rolls_back(self):
        self.auth_as("admin", "admin123")
        order_id = self.create_order().data["id"]

        response = self.client.patch(
            f"/api/v1/orders/{order_id}/",
            {"items": [{"platform": str(self.silver.id), "quantity": 10, "unit_price": "1.00"}]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "insufficient_inventory")
        order = Order.objects.get(pk=order_id)
        self.assertEqual(order.items.get().platform_id, self.gold.id)
        self.gold.refresh_from_db()
        self.silver.refresh_from_db()
        self.assertEqual(self.gold.inventory, 96)
        self.assertEqual(self.silver.inventory, 3)

    def test_invoice_url_is_recorded(self):
        self.auth_as("employee", "emp123")
        order_id = self.create_order().data["id"]

        response = self.client.post(
            f"/api/v1/orders/{order_id}/invoice/",
            {"invoice_url": "https://cdn.example.com/invoices/1.png"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["invoice_url"], "https://cdn.example.com/invoices/1.png")

    def test_metrics_and_report(self):
        self.auth_as("admin", "admin123")
        self.create_order()

        metrics = self.client.get("/api/v1/metrics/")
        self.assertEqual(metrics.status_code, status.HTTP_200_OK)
        self.assertEqual(metrics.data["total_orders"], 1)
        self.assertEqual(metrics.data["pending_orders"], 1)
        self.assertEqual(metrics.data["total_sales"], Decimal("9.00"))
        self.assertEqual(metrics.data["sales_by_platform"][0]["units_sold"], 4)
        self.assertEqual([row["platform"] for row in metrics.data["low_stock_platforms"]], ["Silver Coins"])

        report = self.client.get("/api/v1/reports/orders/")
        self.assertEqual(report.status_code, status.HTTP_200_OK)
        self.assertEqual(report.data["cost_of_sales"], Decimal("6.00"))
        self.assertEqual(report.data["gross_profit"], Decimal("3.00"))

        self.auth_as("employee", "emp123")
        self.assertEqual(self.client.get("/api/v1/metrics/").status_code, status.HTTP_403_FORBIDDEN)

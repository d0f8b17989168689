from django.db.models import Prefetch, Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, user_has_capability
from apps.orders import commit
from apps.orders.models import Order, OrderItem, OrderStatus, RefundReplacement
from apps.orders.serializers import (
    InvoiceSerializer,
    OrderCreateSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
    RefundSerializer,
    ReplacementSerializer,
)
from apps.orders.status import transition


def order_snapshot(order):
    return {
        "order_number": order.order_number,
        "customer_id": str(order.customer_id) if order.customer_id else None,
        "payment_method": order.payment_method,
        "status": order.status,
        "commit_status": order.commit_status,
        "subtotal": str(order.subtotal),
        "discount_amount": str(order.discount_amount),
        "total_amount": str(order.total_amount),
        "items": [
            {"platform_id": str(item.platform_id), "quantity": item.quantity, "unit_price": str(item.unit_price)}
            for item in order.items.all()
        ],
    }


class OrderViewSet(viewsets.ModelViewSet):
    queryset = (
        Order.objects.select_related("customer", "created_by", "verified_by", "payment_detail")
        .prefetch_related(
            Prefetch("items", queryset=OrderItem.objects.select_related("platform")),
            Prefetch("refunds_replacements", queryset=RefundReplacement.objects.select_related("processed_by")),
        )
        .order_by("-created_at")
    )
    serializer_class = OrderSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "patch", "head", "options"]
    capability_map = {
        "list": ["orders.view"],
        "retrieve": ["orders.view"],
        "create": ["orders.create"],
        "partial_update": ["orders.edit"],
        "verify": ["orders.verify"],
        "fulfil": ["orders.fulfil"],
        "cancel": ["orders.cancel"],
        "refund": ["orders.refund"],
        "replace": ["orders.replace"],
        "resume": ["orders.recover"],
        "abandon": ["orders.recover"],
        "invoice": ["orders.view"],
    }

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        return OrderSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if not user_has_capability(self.request.user, "orders.verify"):
            queryset = queryset.filter(created_by=self.request.user)

        for param in ("status", "commit_status", "payment_method", "customer", "created_by"):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})

        platform_id = params.get("platform")
        if platform_id:
            queryset = queryset.filter(items__platform_id=platform_id).distinct()
        date_from = params.get("date_from")
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        date_to = params.get("date_to")
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)
        query = params.get("q")
        if query:
            queryset = queryset.filter(Q(order_number__icontains=query) | Q(customer__name__icontains=query))
        return queryset

    def _respond(self, order, status_code=status.HTTP_200_OK):
        order = self.queryset.get(pk=order.pk)
        return Response(OrderSerializer(order, context=self.get_serializer_context()).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        idempotency_key = data.get("idempotency_key") or None
        draft = {
            "customer": data["customer"],
            "items": data["items"],
            "payment_method": data["payment_method"],
            "discount_amount": data["discount_amount"],
            "actor": request.user,
        }
        replayed = commit.find_replayed_order(idempotency_key, **draft)
        if replayed is not None:
            return self._respond(replayed)

        order = commit.commit_order(
            payment_details=data["payment_details"],
            notes=data["notes"],
            idempotency_key=idempotency_key,
            **draft,
        )
        record_audit(
            actor=request.user,
            action="order.create",
            entity_type="order",
            entity_id=order.id,
            payload=order_snapshot(order),
        )
        return self._respond(order, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        order = self.get_object()
        before = order_snapshot(order)
        serializer = OrderUpdateSerializer(order, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        order = commit.edit_order(order, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action="order.update",
            entity_type="order",
            entity_id=order.id,
            payload={"before": before, "after": order_snapshot(order)},
        )
        return self._respond(order)

    def _transition(self, request, target, reason="", notes=""):
        order, effects = transition(self.get_object(), target, actor=request.user, reason=reason, notes=notes)
        record_audit(
            actor=request.user,
            action=f"order.{target.value}",
            entity_type="order",
            entity_id=order.id,
            payload=effects,
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def verify(self, request, pk=None):
        return self._transition(request, OrderStatus.VERIFIED)

    @action(detail=True, methods=["post"])
    def fulfil(self, request, pk=None):
        return self._transition(request, OrderStatus.FULFILLED)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._transition(request, OrderStatus.CANCELLED)

    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._transition(request, OrderStatus.REFUNDED, **serializer.validated_data)

    @action(detail=True, methods=["post"])
    def replace(self, request, pk=None):
        serializer = ReplacementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._transition(request, OrderStatus.REPLACEMENT, **serializer.validated_data)

    @action(detail=True, methods=["post"])
    def resume(self, request, pk=None):
        order = self.get_object()
        previous = order.commit_status
        order = commit.resume_order(order)
        record_audit(
            actor=request.user,
            action="order.resume",
            entity_type="order",
            entity_id=order.id,
            payload={"from": previous, "to": order.commit_status},
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def abandon(self, request, pk=None):
        order, restocked = commit.abandon_order(self.get_object())
        record_audit(
            actor=request.user,
            action="order.abandon",
            entity_type="order",
            entity_id=order.id,
            payload={"restocked": restocked},
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def invoice(self, request, pk=None):
        order = self.get_object()
        serializer = InvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order.invoice_url = serializer.validated_data["invoice_url"]
        order.save(update_fields=["invoice_url", "updated_at"])
        record_audit(
            actor=request.user,
            action="order.invoice",
            entity_type="order",
            entity_id=order.id,
            payload={"invoice_url": order.invoice_url},
        )
        return self._respond(order)

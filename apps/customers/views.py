from decimal import Decimal

from django.db.models import Count, DecimalField, Max, Q, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission
from apps.customers.models import Customer, CustomerUsername, PricingTier, normalize_phone
from apps.customers.pricing import quote_price
from apps.customers.serializers import (
    CustomerSerializer,
    CustomerUsernameSerializer,
    PriceQuoteQuerySerializer,
    PriceQuoteSerializer,
    PricingTierSerializer,
)
from apps.orders.models import CommitStatus, OrderItem, OrderStatus

RECENT_ORDERS_LIMIT = 10
SPENDING_STATUSES = [OrderStatus.PENDING, OrderStatus.VERIFIED, OrderStatus.FULFILLED, OrderStatus.REPLACEMENT]


def tier_snapshot(tier):
    return {
        "customer_id": str(tier.customer_id),
        "platform_id": str(tier.platform_id),
        "min_quantity": tier.min_quantity,
        "max_quantity": tier.max_quantity,
        "unit_price": str(tier.unit_price),
        "is_default": tier.is_default,
    }


class CustomerViewSet(viewsets.ModelViewSet):
    queryset = Customer.objects.prefetch_related("usernames__platform").order_by("name")
    serializer_class = CustomerSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["customers.view"],
        "retrieve": ["customers.view"],
        "history": ["customers.view"],
        "create": ["customers.manage"],
        "partial_update": ["customers.manage"],
        "update": ["customers.manage"],
        "destroy": ["customers.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        query = self.request.query_params.get("q")
        if query:
            query = query.strip()
            normalized = normalize_phone(query)
            queryset = queryset.filter(
                Q(name__icontains=query) | Q(contact_numbers_normalized__icontains=normalized)
            )
        return queryset

    def perform_create(self, serializer):
        customer = serializer.save()
        record_audit(
            actor=self.request.user,
            action="customer.create",
            entity_type="customer",
            entity_id=customer.id,
            payload={"name": customer.name, "contact_numbers": customer.contact_numbers},
        )

    def perform_update(self, serializer):
        before = {"name": serializer.instance.name, "contact_numbers": list(serializer.instance.contact_numbers)}
        customer = serializer.save()
        record_audit(
            actor=self.request.user,
            action="customer.update",
            entity_type="customer",
            entity_id=customer.id,
            payload={"before": before, "after": {"name": customer.name, "contact_numbers": customer.contact_numbers}},
        )

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="customer.delete",
            entity_type="customer",
            entity_id=instance.id,
            payload={"name": instance.name, "orders": instance.orders.count()},
        )
        super().perform_destroy(instance)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        customer = self.get_object()
        orders = customer.orders.filter(commit_status=CommitStatus.COMMITTED)
        summary = orders.aggregate(
            total_orders=Count("id"),
            last_order_date=Max("created_at"),
            total_spent=Coalesce(
                Sum("total_amount", filter=Q(status__in=SPENDING_STATUSES)),
                Value(Decimal("0.00")),
                output_field=DecimalField(max_digits=16, decimal_places=2),
            ),
        )
        preferred_platforms = list(
            OrderItem.objects.filter(order__in=orders)
            .values("platform_id", "platform__platform")
            .annotate(order_count=Count("order", distinct=True), units=Sum("quantity"))
            .order_by("-order_count", "-units", "platform__platform")[:5]
        )
        recent_orders = [
            {
                "id": order.id,
                "order_number": order.order_number,
                "order_date": order.created_at,
                "total_amount": order.total_amount,
                "status": order.status,
                "item_count": order.item_count,
            }
            for order in orders.annotate(item_count=Count("items")).order_by("-created_at")[:RECENT_ORDERS_LIMIT]
        ]
        return Response(
            {
                "customer": self.get_serializer(customer).data,
                **summary,
                "preferred_platforms": [
                    {
                        "platform_id": row["platform_id"],
                        "platform_name": row["platform__platform"],
                        "order_count": row["order_count"],
                    }
                    for row in preferred_platforms
                ],
                "recent_orders": recent_orders,
            }
        )


class CustomerUsernameViewSet(viewsets.ModelViewSet):
    queryset = CustomerUsername.objects.select_related("customer", "platform")
    serializer_class = CustomerUsernameSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["customers.view"],
        "retrieve": ["customers.view"],
        "create": ["customers.manage"],
        "partial_update": ["customers.manage"],
        "update": ["customers.manage"],
        "destroy": ["customers.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("platform"):
            queryset = queryset.filter(platform_id=params["platform"])
        if params.get("q"):
            queryset = queryset.filter(username__icontains=params["q"].strip())
        return queryset.order_by("username")


class PricingTierViewSet(viewsets.ModelViewSet):
    queryset = PricingTier.objects.select_related("customer", "platform")
    serializer_class = PricingTierSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "delete", "head", "options"]
    capability_map = {
        "list": ["pricing.view"],
        "retrieve": ["pricing.view"],
        "create": ["pricing.manage"],
        "destroy": ["pricing.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("platform"):
            queryset = queryset.filter(platform_id=params["platform"])
        return queryset.order_by("customer__name", "platform__platform", "min_quantity", "created_at")

    def perform_create(self, serializer):
        tier = serializer.save()
        record_audit(
            actor=self.request.user,
            action="pricing_tier.create",
            entity_type="pricing_tier",
            entity_id=tier.id,
            payload=tier_snapshot(tier),
        )

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="pricing_tier.delete",
            entity_type="pricing_tier",
            entity_id=instance.id,
            payload=tier_snapshot(instance),
        )
        super().perform_destroy(instance)


class PriceQuoteView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["pricing.view"]}

    def get(self, request, *args, **kwargs):
        query_serializer = PriceQuoteQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        data = query_serializer.validated_data
        customer = data.get("customer")
        platform = data["platform"]
        quantity = data["quantity"]
        quote = quote_price(customer.pk if customer else None, platform.pk, quantity)
        payload = {
            "customer": customer.pk if customer else None,
            "platform": platform.pk,
            "quantity": quantity,
            "unit_price": quote.unit_price,
            "source": quote.source,
            "tier_id": quote.tier_id,
            "total_price": (quote.unit_price * quantity).quantize(Decimal("0.01")),
        }
        return Response(PriceQuoteSerializer(payload).data, status=status.HTTP_200_OK)

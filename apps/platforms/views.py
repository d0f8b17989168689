from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, user_has_capability
from apps.platforms import ledger
from apps.platforms.models import Platform, PurchaseHistory
from apps.platforms.serializers import PlatformSerializer, PurchaseHistorySerializer, StockPurchaseSerializer

TRUTHY = {"1", "true", "yes"}


def _flag(value):
    return str(value or "").strip().lower() in TRUTHY


def platform_snapshot(platform):
    return {
        "platform": platform.platform,
        "account_type": platform.account_type,
        "inventory": platform.inventory,
        "cost_price": str(platform.cost_price),
        "low_stock_alert": platform.low_stock_alert,
        "is_visible_to_employee": platform.is_visible_to_employee,
    }


class PlatformViewSet(viewsets.ModelViewSet):
    serializer_class = PlatformSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["platforms.view"],
        "retrieve": ["platforms.view"],
        "create": ["platforms.manage"],
        "partial_update": ["platforms.manage"],
        "update": ["platforms.manage"],
        "destroy": ["platforms.manage"],
        "restore": ["platforms.manage"],
        "purchase": ["inventory.purchase"],
        "purchase_history": ["platforms.view"],
    }

    def get_queryset(self):
        params = self.request.query_params
        can_manage = user_has_capability(self.request.user, "platforms.manage")
        if self.action == "restore":
            queryset = Platform.all_objects.deleted()
        elif can_manage and _flag(params.get("deleted_only")):
            queryset = Platform.all_objects.deleted()
        elif can_manage and _flag(params.get("include_deleted")):
            queryset = Platform.all_objects.all()
        else:
            queryset = Platform.objects.all()

        if not user_has_capability(self.request.user, "platforms.view.hidden"):
            queryset = queryset.filter(is_visible_to_employee=True)

        query = params.get("q")
        if query:
            queryset = queryset.filter(Q(platform__icontains=query) | Q(account_type__icontains=query))
        if _flag(params.get("low_stock")):
            queryset = queryset.low_stock()
        return queryset.order_by("platform", "account_type")

    def perform_create(self, serializer):
        platform = serializer.save()
        record_audit(
            actor=self.request.user,
            action="platform.create",
            entity_type="platform",
            entity_id=platform.id,
            payload=platform_snapshot(platform),
        )

    def perform_update(self, serializer):
        before = platform_snapshot(serializer.instance)
        platform = serializer.save()
        record_audit(
            actor=self.request.user,
            action="platform.update",
            entity_type="platform",
            entity_id=platform.id,
            payload={"before": before, "after": platform_snapshot(platform)},
        )

    def perform_destroy(self, instance):
        instance.soft_delete()
        record_audit(
            actor=self.request.user,
            action="platform.delete",
            entity_type="platform",
            entity_id=instance.id,
            payload={"deleted_at": instance.deleted_at.isoformat()},
        )

    @action(detail=True, methods=["post"])
    def restore(self, request, pk=None):
        platform = self.get_object()
        platform.restore()
        record_audit(
            actor=request.user,
            action="platform.restore",
            entity_type="platform",
            entity_id=platform.id,
        )
        return Response(self.get_serializer(platform).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def purchase(self, request, pk=None):
        platform = self.get_object()
        serializer = StockPurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        purchase = ledger.increment(
            platform.id,
            data["quantity"],
            cost_per_unit=data["cost_per_unit"],
            supplier=data["supplier"],
            notes=data["notes"],
            actor=request.user,
        )
        record_audit(
            actor=request.user,
            action="platform.purchase",
            entity_type="platform",
            entity_id=platform.id,
            payload={
                "purchase_id": str(purchase.id),
                "quantity": purchase.quantity,
                "cost_per_unit": str(purchase.cost_per_unit),
                "previous_inventory": purchase.previous_inventory,
                "new_inventory": purchase.new_inventory,
            },
        )
        return Response(PurchaseHistorySerializer(purchase).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="purchase-history")
    def purchase_history(self, request, pk=None):
        platform = self.get_object()
        queryset = PurchaseHistory.objects.filter(platform=platform).select_related("platform", "purchased_by")
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(PurchaseHistorySerializer(page, many=True).data)
        return Response(PurchaseHistorySerializer(queryset, many=True).data)


class PurchaseHistoryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = PurchaseHistory.objects.select_related("platform", "purchased_by")
    serializer_class = PurchaseHistorySerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["inventory.purchase"],
        "retrieve": ["inventory.purchase"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        platform_id = self.request.query_params.get("platform")
        if platform_id:
            queryset = queryset.filter(platform_id=platform_id)
        return queryset.order_by("-created_at")

from decimal import Decimal

from django.db.models import Avg, Count, DecimalField, ExpressionWrapper, F, Q, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework import generics
from rest_framework import serializers
from rest_framework.response import Response

from apps.common.permissions import RolePermission
from apps.orders.models import CommitStatus, Order, OrderItem, OrderStatus, PaymentMethod
from apps.platforms.models import Platform

MONEY = DecimalField(max_digits=16, decimal_places=2)
ZERO = Value(Decimal("0.00"))
SALE_STATUSES = [OrderStatus.PENDING, OrderStatus.VERIFIED, OrderStatus.FULFILLED, OrderStatus.REPLACEMENT]


class OrderMetricsQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    customer = serializers.UUIDField(required=False)
    platform = serializers.UUIDField(required=False)
    employee = serializers.IntegerField(required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    top_limit = serializers.IntegerField(required=False, min_value=1, max_value=50, default=10)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_from": "date_from must be before or equal to date_to."})
        return attrs


class OrderMetricsMixin:
    permission_classes = [RolePermission]
    capability_map = {"get": ["metrics.view"]}

    @staticmethod
    def _filtered_orders(params):
        queryset = Order.objects.filter(commit_status=CommitStatus.COMMITTED)
        if params.get("date_from"):
            queryset = queryset.filter(created_at__date__gte=params["date_from"])
        if params.get("date_to"):
            queryset = queryset.filter(created_at__date__lte=params["date_to"])
        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("platform"):
            queryset = queryset.filter(id__in=OrderItem.objects.filter(platform_id=params["platform"]).values("order_id"))
        if params.get("employee"):
            queryset = queryset.filter(created_by_id=params["employee"])
        if params.get("payment_method"):
            queryset = queryset.filter(payment_method=params["payment_method"])
        return queryset

    @staticmethod
    def _summary_for(orders):
        sales = orders.filter(status__in=SALE_STATUSES)
        counts = orders.aggregate(
            total_orders=Count("id"),
            pending_orders=Count("id", filter=Q(status=OrderStatus.PENDING)),
            verified_orders=Count("id", filter=Q(status=OrderStatus.VERIFIED)),
            fulfilled_orders=Count("id", filter=Q(status=OrderStatus.FULFILLED)),
            cancelled_orders=Count("id", filter=Q(status=OrderStatus.CANCELLED)),
            refunded_orders=Count("id", filter=Q(status=OrderStatus.REFUNDED)),
            replacement_orders=Count("id", filter=Q(status=OrderStatus.REPLACEMENT)),
        )
        totals = sales.aggregate(
            total_sales=Coalesce(Sum("total_amount"), ZERO, output_field=MONEY),
            verified_sales=Coalesce(
                Sum("total_amount", filter=Q(status__in=[OrderStatus.VERIFIED, OrderStatus.FULFILLED])),
                ZERO,
                output_field=MONEY,
            ),
            avg_order=Coalesce(Avg("total_amount"), ZERO, output_field=MONEY),
        )
        return {**counts, **totals}

    @staticmethod
    def _sale_items(orders):
        return OrderItem.objects.filter(order__in=orders.filter(status__in=SALE_STATUSES))

    def _sales_by_platform(self, orders, top_limit):
        return list(
            self._sale_items(orders)
            .values("platform_id", "platform__platform", "platform__account_type")
            .annotate(
                units_sold=Coalesce(Sum("quantity"), 0),
                sales_amount=Coalesce(Sum("total_price"), ZERO, output_field=MONEY),
            )
            .order_by("-sales_amount", "platform__platform")[:top_limit]
        )

    @staticmethod
    def _sales_by_customer(orders, top_limit):
        return list(
            orders.filter(status__in=SALE_STATUSES)
            .values("customer_id", "customer__name")
            .annotate(
                orders_count=Count("id"),
                total_spent=Coalesce(Sum("total_amount"), ZERO, output_field=MONEY),
            )
            .order_by("-total_spent")[:top_limit]
        )

    @staticmethod
    def _low_stock_platforms():
        return list(
            Platform.objects.low_stock()
            .values("id", "platform", "account_type", "inventory", "low_stock_alert")
            .order_by("inventory", "platform")
        )

    def _build_metrics_payload(self, params):
        orders = self._filtered_orders(params)
        return {
            **self._summary_for(orders),
            "range": {"date_from": params.get("date_from"), "date_to": params.get("date_to")},
            "sales_by_platform": self._sales_by_platform(orders, params["top_limit"]),
            "sales_by_customer": self._sales_by_customer(orders, params["top_limit"]),
            "low_stock_platforms": self._low_stock_platforms(),
        }, orders


class OrderMetricsView(OrderMetricsMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        query_serializer = OrderMetricsQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        metrics_payload, _ = self._build_metrics_payload(query_serializer.validated_data)
        return Response(metrics_payload)


class OrderReportView(OrderMetricsMixin, generics.GenericAPIView):
    @staticmethod
    def _sales_by_day(orders):
        return list(
            orders.filter(status__in=SALE_STATUSES)
            .values("created_at__date")
            .annotate(
                total_sales=Coalesce(Sum("total_amount"), ZERO, output_field=MONEY),
                orders_count=Count("id"),
            )
            .order_by("created_at__date")
        )

    @staticmethod
    def _sales_by_employee(orders):
        return list(
            orders.filter(status__in=SALE_STATUSES)
            .values("created_by_id", "created_by__username")
            .annotate(
                total_sales=Coalesce(Sum("total_amount"), ZERO, output_field=MONEY),
                orders_count=Count("id"),
                avg_order=Coalesce(Avg("total_amount"), ZERO, output_field=MONEY),
            )
            .order_by("-total_sales")
        )

    @staticmethod
    def _sales_by_payment_method(orders):
        return list(
            orders.filter(status__in=SALE_STATUSES)
            .values("payment_method")
            .annotate(
                total_sales=Coalesce(Sum("total_amount"), ZERO, output_field=MONEY),
                orders_count=Count("id"),
            )
            .order_by("payment_method")
        )

    def _cost_of_sales(self, orders):
        line_cost = ExpressionWrapper(F("quantity") * F("platform__cost_price"), output_field=MONEY)
        return self._sale_items(orders).aggregate(total=Coalesce(Sum(line_cost), ZERO, output_field=MONEY))["total"]

    def get(self, request, *args, **kwargs):
        query_serializer = OrderMetricsQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        metrics_payload, orders = self._build_metrics_payload(query_serializer.validated_data)
        cost_of_sales = Decimal(str(self._cost_of_sales(orders)))
        report_payload = {
            **metrics_payload,
            "sales_by_day": self._sales_by_day(orders),
            "sales_by_employee": self._sales_by_employee(orders),
            "sales_by_payment_method": self._sales_by_payment_method(orders),
            "cost_of_sales": cost_of_sales.quantize(Decimal("0.01")),
            "gross_profit": (Decimal(str(metrics_payload["total_sales"])) - cost_of_sales).quantize(Decimal("0.01")),
        }
        return Response(report_payload)

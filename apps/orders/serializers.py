from decimal import Decimal

from rest_framework import serializers

from apps.customers.models import Customer
from apps.customers.pricing import quote_price
from apps.orders.composer import OrderComposer
from apps.orders.models import Order, OrderItem, PaymentMethod, RefundReplacement
from apps.orders.payments import PaymentDetailSerializer, validate_payment_details
from apps.platforms.models import Platform


class OrderItemSerializer(serializers.ModelSerializer):
    platform_name = serializers.CharField(source="platform.platform", read_only=True)
    account_type = serializers.CharField(source="platform.account_type", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "line_number",
            "platform",
            "platform_name",
            "account_type",
            "quantity",
            "unit_price",
            "total_price",
            "username",
            "inventory_applied",
        ]
        read_only_fields = fields


class OrderItemInputSerializer(serializers.Serializer):
    platform = serializers.PrimaryKeyRelatedField(queryset=Platform.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
    )
    username = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")


def _price_items(items, customer):
    """Fill missing unit prices from the customer's tiers or the platform base price."""
    priced = []
    for item in items:
        item = dict(item)
        if item.get("unit_price") is None:
            quote = quote_price(getattr(customer, "pk", None), item["platform"].pk, item["quantity"])
            item["unit_price"] = quote.unit_price
        priced.append(item)
    return priced


def _validate_discount(items, discount_amount):
    composer = OrderComposer()
    for item in items:
        composer.add_item(item["platform"].pk, item["quantity"], item["unit_price"])
    subtotal = composer.compute_totals().subtotal
    if discount_amount > subtotal:
        raise serializers.ValidationError({"discount_amount": "Discount cannot exceed the subtotal."})


class RefundReplacementSerializer(serializers.ModelSerializer):
    processed_by_username = serializers.CharField(source="processed_by.username", read_only=True, default=None)

    class Meta:
        model = RefundReplacement
        fields = ["id", "type", "reason", "notes", "amount", "processed_by", "processed_by_username", "processed_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)
    verified_by_username = serializers.CharField(source="verified_by.username", read_only=True, default=None)
    items = OrderItemSerializer(many=True, read_only=True)
    payment_detail = PaymentDetailSerializer(read_only=True, allow_null=True)
    refunds_replacements = RefundReplacementSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer",
            "customer_name",
            "payment_method",
            "status",
            "commit_status",
            "subtotal",
            "discount_amount",
            "total_amount",
            "notes",
            "invoice_url",
            "items",
            "payment_detail",
            "refunds_replacements",
            "created_by",
            "created_by_username",
            "verified_at",
            "verified_by",
            "verified_by_username",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer",
            "customer_name",
            "payment_method",
            "status",
            "commit_status",
            "total_amount",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    payment_details = serializers.DictField(required=False, default=dict)
    discount_amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        default=Decimal("0.00"),
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        attrs["items"] = _price_items(attrs["items"], attrs["customer"])
        _validate_discount(attrs["items"], attrs["discount_amount"])
        validate_payment_details(attrs["payment_method"], attrs["payment_details"])
        return attrs


class OrderUpdateSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False)
    items = OrderItemInputSerializer(many=True, allow_empty=False, required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    payment_details = serializers.DictField(required=False)
    discount_amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
    )
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        order = self.instance
        customer = attrs.get("customer", order.customer)
        if "items" in attrs:
            attrs["items"] = _price_items(attrs["items"], customer)
            items = attrs["items"]
        else:
            items = [
                {"platform": item.platform, "quantity": item.quantity, "unit_price": item.unit_price}
                for item in order.items.select_related("platform")
            ]
        _validate_discount(items, attrs.get("discount_amount", order.discount_amount))
        if "payment_method" in attrs and "payment_details" not in attrs:
            raise serializers.ValidationError({"payment_details": "Payment details are required when changing the method."})
        if "payment_details" in attrs:
            validate_payment_details(attrs.get("payment_method", order.payment_method), attrs["payment_details"])
        return attrs


class RefundSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReplacementSerializer(RefundSerializer):
    reason = serializers.CharField(max_length=500)


class InvoiceSerializer(serializers.Serializer):
    invoice_url = serializers.URLField(max_length=500)

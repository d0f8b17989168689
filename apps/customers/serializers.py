from rest_framework import serializers

from apps.customers.models import Customer, CustomerUsername, PricingTier
from apps.platforms.models import Platform


class CustomerUsernameSerializer(serializers.ModelSerializer):
    platform_name = serializers.CharField(source="platform.platform", read_only=True, default="")

    class Meta:
        model = CustomerUsername
        fields = ["id", "customer", "platform", "platform_name", "username", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_username(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Username is required.")
        return value


class CustomerSerializer(serializers.ModelSerializer):
    contact_numbers = serializers.ListField(
        child=serializers.CharField(max_length=50, allow_blank=True),
        required=False,
    )
    usernames = CustomerUsernameSerializer(many=True, read_only=True)

    class Meta:
        model = Customer
        fields = ["id", "name", "contact_numbers", "notes", "usernames", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required.")
        return value


class PricingTierSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    platform_name = serializers.CharField(source="platform.platform", read_only=True)
    platform = serializers.PrimaryKeyRelatedField(queryset=Platform.objects.all())

    class Meta:
        model = PricingTier
        fields = [
            "id",
            "customer",
            "customer_name",
            "platform",
            "platform_name",
            "min_quantity",
            "max_quantity",
            "unit_price",
            "is_default",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate_min_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError("Minimum quantity must be >= 1.")
        return value

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Unit price must be >= 0.")
        return value

    def validate(self, attrs):
        min_quantity = attrs.get("min_quantity", 1)
        max_quantity = attrs.get("max_quantity")
        if max_quantity is not None and max_quantity < min_quantity:
            raise serializers.ValidationError({"max_quantity": "Maximum quantity must be >= minimum quantity."})
        return attrs


class PriceQuoteQuerySerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    platform = serializers.PrimaryKeyRelatedField(queryset=Platform.objects.all())
    quantity = serializers.IntegerField(min_value=1)


class PriceQuoteSerializer(serializers.Serializer):
    customer = serializers.UUIDField(allow_null=True)
    platform = serializers.UUIDField()
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    source = serializers.CharField()
    tier_id = serializers.UUIDField(allow_null=True)
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2)

from decimal import Decimal

from rest_framework import serializers

from apps.platforms.models import Platform, PurchaseHistory


class PlatformSerializer(serializers.ModelSerializer):
    lifecycle = serializers.CharField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Platform
        fields = [
            "id",
            "platform",
            "account_type",
            "inventory",
            "cost_price",
            "low_stock_alert",
            "is_visible_to_employee",
            "is_low_stock",
            "lifecycle",
            "created_at",
            "updated_at",
            "deleted_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at", "deleted_at"]

    def validate_platform(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Platform name is required.")
        return value

    def validate_account_type(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Account type is required.")
        return value

    def validate_inventory(self, value):
        if value < 0:
            raise serializers.ValidationError("Inventory must be >= 0.")
        if self.instance is not None and value != self.instance.inventory:
            raise serializers.ValidationError("Use the purchase endpoint to change inventory.")
        return value

    def validate_cost_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Cost price must be >= 0.")
        return value

    def validate_low_stock_alert(self, value):
        if value < 1:
            raise serializers.ValidationError("Low stock alert must be >= 1.")
        return value


class PurchaseHistorySerializer(serializers.ModelSerializer):
    platform_name = serializers.CharField(source="platform.platform", read_only=True)
    purchased_by_username = serializers.CharField(source="purchased_by.username", read_only=True, default="")

    class Meta:
        model = PurchaseHistory
        fields = [
            "id",
            "platform",
            "platform_name",
            "quantity",
            "cost_per_unit",
            "total_cost",
            "supplier",
            "notes",
            "previous_inventory",
            "new_inventory",
            "purchased_by",
            "purchased_by_username",
            "created_at",
        ]
        read_only_fields = fields


class StockPurchaseSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    cost_per_unit = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    supplier = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")

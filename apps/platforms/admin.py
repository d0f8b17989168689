from django.contrib import admin

from apps.platforms.models import Platform, PurchaseHistory


@admin.register(Platform)
class PlatformAdmin(admin.ModelAdmin):
    list_display = ("platform", "account_type", "inventory", "cost_price", "low_stock_alert", "deleted_at", "updated_at")
    list_filter = ("account_type", "is_visible_to_employee")
    search_fields = ("platform", "account_type")

    def get_queryset(self, request):
        return Platform.all_objects.all()


@admin.register(PurchaseHistory)
class PurchaseHistoryAdmin(admin.ModelAdmin):
    list_display = ("platform", "quantity", "cost_per_unit", "total_cost", "supplier", "purchased_by", "created_at")
    search_fields = ("platform__platform", "supplier")
    readonly_fields = ("previous_inventory", "new_inventory")

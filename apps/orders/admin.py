from django.contrib import admin

from apps.orders.models import Order, OrderItem, PaymentDetail, RefundReplacement


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("platform", "quantity", "unit_price", "total_price", "username", "inventory_applied")


class PaymentDetailInline(admin.StackedInline):
    model = PaymentDetail
    extra = 0


class RefundReplacementInline(admin.TabularInline):
    model = RefundReplacement
    extra = 0
    can_delete = False
    readonly_fields = ("type", "reason", "notes", "amount", "processed_by", "processed_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer", "payment_method", "status", "commit_status", "total_amount", "created_by", "created_at")
    list_filter = ("status", "commit_status", "payment_method")
    search_fields = ("order_number", "customer__name")
    readonly_fields = ("order_number", "commit_status", "commit_payload", "verified_at", "verified_by")
    inlines = [OrderItemInline, PaymentDetailInline, RefundReplacementInline]


@admin.register(RefundReplacement)
class RefundReplacementAdmin(admin.ModelAdmin):
    list_display = ("order", "type", "reason", "amount", "processed_by", "processed_at")
    list_filter = ("type",)
    search_fields = ("order__order_number", "reason")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

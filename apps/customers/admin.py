from django.contrib import admin

from apps.customers.models import Customer, CustomerUsername, PricingTier


class CustomerUsernameInline(admin.TabularInline):
    model = CustomerUsername
    extra = 0


class PricingTierInline(admin.TabularInline):
    model = PricingTier
    extra = 0


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "contact_numbers", "updated_at")
    search_fields = ("name", "contact_numbers_normalized")
    inlines = [CustomerUsernameInline, PricingTierInline]


@admin.register(PricingTier)
class PricingTierAdmin(admin.ModelAdmin):
    list_display = ("customer", "platform", "min_quantity", "max_quantity", "unit_price", "is_default")
    list_filter = ("is_default",)
    search_fields = ("customer__name", "platform__platform")

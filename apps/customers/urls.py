from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.customers.views import CustomerUsernameViewSet, CustomerViewSet, PriceQuoteView, PricingTierViewSet

router = DefaultRouter()
router.register("customers", CustomerViewSet, basename="customer")
router.register("customer-usernames", CustomerUsernameViewSet, basename="customer-username")
router.register("pricing-tiers", PricingTierViewSet, basename="pricing-tier")

urlpatterns = [
    path("pricing/quote/", PriceQuoteView.as_view(), name="pricing-quote"),
]
urlpatterns += router.urls

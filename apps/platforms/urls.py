from rest_framework.routers import DefaultRouter

from apps.platforms.views import PlatformViewSet, PurchaseHistoryViewSet

router = DefaultRouter()
router.register("platforms", PlatformViewSet, basename="platform")
router.register("purchase-history", PurchaseHistoryViewSet, basename="purchase-history")

urlpatterns = router.urls

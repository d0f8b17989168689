from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.orders.views import OrderViewSet
from apps.orders.views_metrics import OrderMetricsView, OrderReportView

router = DefaultRouter()
router.register("orders", OrderViewSet, basename="order")

urlpatterns = [
    path("metrics/", OrderMetricsView.as_view(), name="order-metrics"),
    path("reports/orders/", OrderReportView.as_view(), name="order-report"),
]
urlpatterns += router.urls

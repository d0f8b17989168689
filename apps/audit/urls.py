from rest_framework.routers import DefaultRouter

from apps.audit.views import AuditLogViewSet

router = DefaultRouter()
router.register("activity-log", AuditLogViewSet, basename="activity-log")

urlpatterns = router.urls

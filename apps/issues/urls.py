from rest_framework.routers import DefaultRouter

from apps.issues.views import CustomerIssueViewSet

router = DefaultRouter()
router.register("issues", CustomerIssueViewSet, basename="issue")

urlpatterns = router.urls

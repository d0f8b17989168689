from django.db.models import Count
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission
from apps.issues.models import CLOSED_STATUSES, CustomerIssue, IssueStatus
from apps.issues.serializers import CustomerIssueSerializer, IssueCommentSerializer


def _counts(queryset, field_name):
    return {row[field_name]: row["count"] for row in queryset.values(field_name).annotate(count=Count("id")).order_by(field_name)}


class CustomerIssueViewSet(viewsets.ModelViewSet):
    queryset = CustomerIssue.objects.select_related("customer", "order", "created_by", "assigned_to").prefetch_related(
        "comments__created_by"
    )
    serializer_class = CustomerIssueSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["issues.view"],
        "retrieve": ["issues.view"],
        "analytics": ["issues.view"],
        "create": ["issues.manage"],
        "partial_update": ["issues.manage"],
        "update": ["issues.manage"],
        "destroy": ["issues.manage"],
        "comments": ["issues.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        for param in ("status", "priority", "issue_type", "customer", "order", "assigned_to"):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return queryset.order_by("-created_at")

    def perform_create(self, serializer):
        extra = {"created_by": self.request.user}
        if serializer.validated_data.get("status") in CLOSED_STATUSES:
            extra["resolved_at"] = timezone.now()
        issue = serializer.save(**extra)
        record_audit(
            actor=self.request.user,
            action="issue.create",
            entity_type="issue",
            entity_id=issue.id,
            payload={"title": issue.title, "status": issue.status, "priority": issue.priority},
        )

    def perform_update(self, serializer):
        previous_status = serializer.instance.status
        new_status = serializer.validated_data.get("status", previous_status)
        extra = {}
        if new_status in CLOSED_STATUSES and previous_status not in CLOSED_STATUSES:
            extra["resolved_at"] = timezone.now()
        elif new_status not in CLOSED_STATUSES and previous_status in CLOSED_STATUSES:
            extra["resolved_at"] = None
        issue = serializer.save(**extra)
        record_audit(
            actor=self.request.user,
            action="issue.update",
            entity_type="issue",
            entity_id=issue.id,
            payload={"status": {"before": previous_status, "after": issue.status}, "priority": issue.priority},
        )

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="issue.delete",
            entity_type="issue",
            entity_id=instance.id,
            payload={"title": instance.title},
        )
        super().perform_destroy(instance)

    @action(detail=True, methods=["post"])
    def comments(self, request, pk=None):
        issue = self.get_object()
        serializer = IssueCommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = serializer.save(issue=issue, created_by=request.user)
        record_audit(
            actor=request.user,
            action="issue.comment",
            entity_type="issue",
            entity_id=issue.id,
            payload={"comment_id": str(comment.id), "is_internal": comment.is_internal},
        )
        return Response(IssueCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def analytics(self, request):
        queryset = self.get_queryset().select_related(None).prefetch_related(None)
        resolved = queryset.filter(resolved_at__isnull=False).values_list("created_at", "resolved_at")
        durations = [(resolved_at - created_at).total_seconds() / 3600 for created_at, resolved_at in resolved]
        average_hours = round(sum(durations) / len(durations), 2) if durations else None
        return Response(
            {
                "total": queryset.count(),
                "open": queryset.exclude(status__in=CLOSED_STATUSES).count(),
                "by_status": _counts(queryset, "status"),
                "by_type": _counts(queryset, "issue_type"),
                "by_priority": _counts(queryset, "priority"),
                "average_resolution_hours": average_hours,
                "statuses": [choice for choice, _ in IssueStatus.choices],
            }
        )

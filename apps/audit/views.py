from rest_framework import viewsets

from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer
from apps.common.permissions import RolePermission


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor")
    serializer_class = AuditLogSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["activity.view"],
        "retrieve": ["activity.view"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        action = self.request.query_params.get("action")
        entity_type = self.request.query_params.get("entity_type")
        entity_id = self.request.query_params.get("entity_id")
        actor = self.request.query_params.get("actor")
        if action:
            queryset = queryset.filter(action__startswith=action)
        if entity_type:
            queryset = queryset.filter(entity_type=entity_type)
        if entity_id:
            queryset = queryset.filter(entity_id=entity_id)
        if actor:
            queryset = queryset.filter(actor_id=actor)
        return queryset

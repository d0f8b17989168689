from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import viewsets
from rest_framework.exceptions import PermissionDenied

from apps.accounts.models import UserRole
from apps.accounts.serializers import PRIVILEGED_ROLES, EmployeeSerializer
from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, user_has_capability

User = get_user_model()


def employee_snapshot(user):
    return {"username": user.username, "role": user.role, "is_active": user.is_active}


class EmployeeViewSet(viewsets.ModelViewSet):
    serializer_class = EmployeeSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["employees.manage"],
        "retrieve": ["employees.manage"],
        "create": ["employees.manage"],
        "partial_update": ["employees.manage"],
        "update": ["employees.manage"],
        "destroy": ["employees.manage"],
    }

    def get_queryset(self):
        queryset = User.objects.select_related("created_by").order_by("username")
        if not user_has_capability(self.request.user, "employees.manage.admins"):
            queryset = queryset.filter(role=UserRole.EMPLOYEE)
        role = self.request.query_params.get("role")
        if role:
            queryset = queryset.filter(role=role)
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(Q(username__icontains=query) | Q(first_name__icontains=query) | Q(last_name__icontains=query))
        return queryset

    def perform_create(self, serializer):
        user = serializer.save(created_by=self.request.user)
        record_audit(
            actor=self.request.user,
            action="employee.create",
            entity_type="user",
            entity_id=user.id,
            payload=employee_snapshot(user),
        )

    def perform_update(self, serializer):
        before = employee_snapshot(serializer.instance)
        user = serializer.save()
        payload = {"before": before, "after": employee_snapshot(user)}
        if "password" in serializer.validated_data:
            payload["password_changed"] = True
        record_audit(
            actor=self.request.user,
            action="employee.update",
            entity_type="user",
            entity_id=user.id,
            payload=payload,
        )

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise PermissionDenied("You cannot delete your own account.")
        if instance.role in PRIVILEGED_ROLES and not user_has_capability(self.request.user, "employees.manage.admins"):
            raise PermissionDenied("Only a super admin can delete admins.")
        record_audit(
            actor=self.request.user,
            action="employee.delete",
            entity_type="user",
            entity_id=instance.id,
            payload=employee_snapshot(instance),
        )
        super().perform_destroy(instance)

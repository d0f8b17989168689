from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


EMPLOYEE_CAPABILITIES = {
    "platforms.view",
    "customers.view",
    "customers.manage",
    "pricing.view",
    "orders.view",
    "orders.create",
    "issues.view",
    "issues.manage",
}

ADMIN_CAPABILITIES = EMPLOYEE_CAPABILITIES | {
    "platforms.view.hidden",
    "platforms.manage",
    "inventory.purchase",
    "pricing.manage",
    "orders.edit",
    "orders.verify",
    "orders.fulfil",
    "orders.cancel",
    "orders.refund",
    "orders.replace",
    "orders.recover",
    "metrics.view",
    "activity.view",
    "employees.manage",
}

ROLE_CAPABILITIES = {
    UserRole.SUPER_ADMIN: ADMIN_CAPABILITIES | {"employees.manage.admins"},
    UserRole.ADMIN: ADMIN_CAPABILITIES,
    UserRole.EMPLOYEE: EMPLOYEE_CAPABILITIES,
}


def resolve_role(user):
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.EMPLOYEE):
        if role in group_names:
            return role
    return getattr(user, "role", UserRole.EMPLOYEE)


def user_has_capability(user, capability):
    if not user or not user.is_authenticated:
        return False
    return capability in ROLE_CAPABILITIES.get(resolve_role(user), set())


class RolePermission(BasePermission):
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", None) or request.method.lower()
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True

        user_caps = ROLE_CAPABILITIES.get(resolve_role(request.user), set())
        return all(cap in user_caps for cap in required)

# apps/rbac/permissions.py
from typing import Dict, Iterable, Set

from rest_framework.permissions import SAFE_METHODS, BasePermission

from .policy import ADMIN_ROLE, _norm, caller_for, is_allowed


class HasRole(BasePermission):
    """
    I gate an endpoint by role names. Subclasses (or the roles_required()
    factory below) set `required_roles`.

    Behavior:
    - Superusers always pass (configurable via allow_superuser).
    - If the user has the 'admin' role, they pass everything.
    - Role matching is case-insensitive.
    """

    message = "You do not have permission to perform this action."
    required_roles: Set[str] = set()
    admin_role: str = ADMIN_ROLE
    allow_superuser: bool = True
    safe_methods_open: bool = False

    def has_permission(self, request, view) -> bool:
        # No roles configured → allow (useful for composing with other perms).
        if not self.required_roles:
            return True

        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False

        if self.safe_methods_open and request.method in SAFE_METHODS:
            return True

        if self.allow_superuser and getattr(user, "is_superuser", False):
            return True

        role = _norm(getattr(user, "role", ""))
        if role == self.admin_role:
            return True

        return role in self.required_roles


def roles_required(*roles: Iterable[str], read_open: bool = False):
    """
    I return a concrete DRF permission class that requires ANY of the given roles.
    With read_open=True, GET/HEAD/OPTIONS stay open to any authenticated user.

    Usage:
        permission_classes = [IsAuthenticated, roles_required("manager", "finance_manager")]
    """
    required = {_norm(r) for r in roles if isinstance(r, str) and r.strip()}

    class RolesRequired(HasRole):
        required_roles = required
        safe_methods_open = read_open

    return RolesRequired


# ViewSet action -> policy action
DEFAULT_ACTION_MAP: Dict[str, str] = {
    "list": "list",
    "create": "create",
    "retrieve": "view",
    "update": "change",
    "partial_update": "change",
    "destroy": "delete",
}


class PolicyPermission(BasePermission):
    """
    Bridge from DRF views to apps.rbac.policy.is_allowed.

    - Collection routes (list, create, detail=False actions) are checked
      against the view's `policy_resource` type string.
    - Detail routes are checked against the object itself.

    Views may set `policy_actions = {"publish": "publish", ...}` to map custom
    @action names; unmapped actions fall back to DEFAULT_ACTION_MAP, then "view".
    """

    message = "You do not have permission to perform this action."

    def _policy_action(self, view) -> str:
        action_name = getattr(view, "action", None) or ""
        mapping = {**DEFAULT_ACTION_MAP, **getattr(view, "policy_actions", {})}
        return mapping.get(action_name, "view")

    def has_permission(self, request, view) -> bool:
        resource = getattr(view, "policy_resource", None)
        if not resource or getattr(view, "detail", False):
            return True
        return is_allowed(caller_for(request.user), self._policy_action(view), resource)

    def has_object_permission(self, request, view, obj) -> bool:
        return is_allowed(caller_for(request.user), self._policy_action(view), obj)

# apps/rbac/policy.py
"""
Single authorization entry point.

Every check in the project goes through ``is_allowed(caller, action, resource)``.
``resource`` is either a model instance (object-level checks) or a resource
type string such as ``"report"`` (collection-level checks like ``create``).

Rules are registered per ``(resource_type, action)`` with ``@rule``. Admins
pass everything; a missing rule denies.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from django.core.exceptions import PermissionDenied

ADMIN_ROLE = "admin"


def _norm(s: str) -> str:
    """I normalize role names for reliable comparisons."""
    return (s or "").strip().lower()


@dataclass(frozen=True)
class Caller:
    """Who is asking. Built once per request and passed explicitly."""

    id: Optional[int]
    role: str = "user"
    department_id: Optional[int] = None
    is_superuser: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_superuser or _norm(self.role) == ADMIN_ROLE

    def has_role(self, *roles: str) -> bool:
        return _norm(self.role) in {_norm(r) for r in roles}


ANONYMOUS = Caller(id=None, role="")


def caller_for(user) -> Caller:
    if not getattr(user, "is_authenticated", False):
        return ANONYMOUS
    return Caller(
        id=user.pk,
        role=_norm(getattr(user, "role", "") or "user"),
        department_id=getattr(user, "department_id", None),
        is_superuser=bool(getattr(user, "is_superuser", False)),
    )


Predicate = Callable[[Caller, Any], bool]
_RULES: Dict[Tuple[str, str], Predicate] = {}


def rule(resource_type: str, *actions: str):
    """Register ``fn(caller, resource) -> bool`` for the given actions."""

    def deco(fn: Predicate) -> Predicate:
        for action in actions:
            _RULES[(resource_type, action)] = fn
        return fn

    return deco


def resource_type_of(resource) -> str:
    if isinstance(resource, str):
        return resource
    meta = getattr(resource, "_meta", None)
    if meta is not None:
        return meta.model_name
    return type(resource).__name__.lower()


def is_allowed(caller: Caller, action: str, resource) -> bool:
    if caller.id is None:
        return False
    if caller.is_admin:
        return True
    fn = _RULES.get((resource_type_of(resource), action))
    if fn is None:
        return False
    return bool(fn(caller, resource))


def authorize(caller: Caller, action: str, resource, message: str = "") -> None:
    if not is_allowed(caller, action, resource):
        raise PermissionDenied(message or "You do not have permission to perform this action.")


def registered_rules() -> Iterable[Tuple[str, str]]:
    return sorted(_RULES)


def _is_instance(resource) -> bool:
    return not isinstance(resource, str)


def _owner(resource, field: str) -> Optional[int]:
    if not _is_instance(resource):
        return None
    return getattr(resource, f"{field}_id", None)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@rule("user", "view")
def _user_view(caller, user):
    return caller.has_role("manager") or (_is_instance(user) and user.pk == caller.id)


@rule("user", "change")
def _user_change(caller, user):
    return _is_instance(user) and user.pk == caller.id


@rule("user", "list")
def _user_list(caller, _):
    return caller.has_role("manager")


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------

@rule("department", "view", "list")
def _department_view(caller, _):
    return True


@rule("department", "change", "manage_members")
def _department_change(caller, dept):
    return _owner(dept, "head") == caller.id


# ---------------------------------------------------------------------------
# Events & attendance
# ---------------------------------------------------------------------------

EVENT_MANAGERS = ("manager", "event_manager")


@rule("event", "view", "list", "register")
def _event_view(caller, _):
    return True


@rule("event", "create")
def _event_create(caller, _):
    return caller.has_role(*EVENT_MANAGERS, "department_head")


@rule("event", "change")
def _event_change(caller, event):
    return caller.has_role(*EVENT_MANAGERS) or _owner(event, "organizer") == caller.id


@rule("event", "delete")
def _event_delete(caller, event):
    return _owner(event, "organizer") == caller.id


ATTENDANCE_MARKERS = ("manager", "attendance_manager")


@rule("attendance", "create", "list")
def _attendance_collection(caller, _):
    # Scoped per record: listing filters rows, creating checks "mark" on the event.
    return True


@rule("event", "mark")
def _attendance_mark(caller, event):
    # Marking is checked against the Event, not a record.
    return caller.has_role(*ATTENDANCE_MARKERS) or _owner(event, "organizer") == caller.id


@rule("attendance", "change", "delete")
def _attendance_change(caller, record):
    if caller.has_role(*ATTENDANCE_MARKERS):
        return True
    return _is_instance(record) and record.event.organizer_id == caller.id


@rule("attendance", "view")
def _attendance_view(caller, record):
    return _owner(record, "user") == caller.id or _attendance_change(caller, record)


# ---------------------------------------------------------------------------
# Finance
# ---------------------------------------------------------------------------

FINANCE_ROLES = ("manager", "finance_manager")


@rule("transaction", "view", "list", "create", "change", "summary")
def _finance(caller, _):
    return caller.has_role(*FINANCE_ROLES)


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------

ANNOUNCERS = ("manager", "department_head", "communication_manager")


@rule("announcement", "view", "list", "read")
def _announcement_view(caller, _):
    return True


@rule("announcement", "create", "manage")
def _announcement_create(caller, _):
    return caller.has_role(*ANNOUNCERS)


@rule("announcement", "change", "delete", "publish")
def _announcement_change(caller, ann):
    return caller.has_role("communication_manager") or _owner(ann, "author") == caller.id


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

REPORT_VIEWERS = ("manager", "report_manager")


@rule("report", "create", "summary")
def _report_create(caller, _):
    return caller.has_role(*REPORT_VIEWERS, "finance_manager")


@rule("report", "list")
def _report_list(caller, _):
    return True


@rule("report", "view")
def _report_view(caller, report):
    if caller.has_role(*REPORT_VIEWERS):
        return True
    if not _is_instance(report):
        return False
    if report.is_public or report.generated_by_id == caller.id:
        return True
    if caller.role and caller.role in {_norm(r) for r in report.recipient_roles or ()}:
        return True
    return report.recipient_users.filter(pk=caller.id).exists()


@rule("report", "change", "delete", "run")
def _report_change(caller, report):
    return _owner(report, "generated_by") == caller.id


@rule("reporttemplate", "create")
def _template_create(caller, _):
    return caller.has_role(*REPORT_VIEWERS, "finance_manager")


@rule("reporttemplate", "list")
def _template_list(caller, _):
    return True


@rule("reporttemplate", "view")
def _template_view(caller, template):
    if caller.has_role(*REPORT_VIEWERS):
        return True
    return _is_instance(template) and (template.is_public or template.created_by_id == caller.id)


@rule("reporttemplate", "change", "delete")
def _template_change(caller, template):
    return _owner(template, "created_by") == caller.id


# ---------------------------------------------------------------------------
# Messaging & notifications
# ---------------------------------------------------------------------------

@rule("message", "create", "list")
def _message_collection(caller, _):
    return True


@rule("message", "view")
def _message_view(caller, message):
    if not _is_instance(message):
        return False
    if message.sender_id == caller.id:
        return True
    return message.recipients.filter(user_id=caller.id, is_deleted=False).exists()


@rule("message", "change", "delete")
def _message_change(caller, message):
    if not _is_instance(message):
        return False
    if message.sender_id == caller.id:
        return True
    return message.recipients.filter(user_id=caller.id).exists()


@rule("notification", "list")
def _notification_list(caller, _):
    return True


@rule("notification", "view", "change", "delete")
def _notification_owner(caller, notification):
    return _owner(notification, "user") == caller.id

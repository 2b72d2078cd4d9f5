# apps/rbac/utils.py
from typing import Iterable

from .policy import Caller, caller_for, _norm


def request_caller(request) -> Caller:
    """The explicit caller identity for a DRF/Django request."""
    return caller_for(getattr(request, "user", None))


def has_role(user, *roles: Iterable[str], allow_superuser: bool = True) -> bool:
    """
    Plain helper: does the user have ANY of the given roles?
    Admin matches everything. Example:
        if has_role(request.user, "manager", "finance_manager"):
            ...
    """
    if not getattr(user, "is_authenticated", False):
        return False
    if allow_superuser and getattr(user, "is_superuser", False):
        return True

    required = {_norm(r) for r in roles if isinstance(r, str) and r.strip()}
    if not required:
        return True

    role = _norm(getattr(user, "role", ""))
    if role == "admin":
        return True

    return role in required

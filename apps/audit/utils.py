import logging

from apps.audit.models import AuditEvent

logger = logging.getLogger(__name__)


def _client_ip(request) -> str | None:
    if request is None:
        return None
    xff = request.META.get("HTTP_X_FORWARDED_FOR")
    if xff:
        return xff.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def _request_actor(request):
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user
    return None


def log_event(
    request,
    action: str,
    object_type: str = "",
    object_id: str | int | None = None,
    *,
    actor=None,
    metadata: dict | None = None,
) -> AuditEvent:
    """
    Centralized audit insert. `request` may be None for background work
    (Celery tasks, management commands); pass `actor` explicitly then.
    """
    if actor is None:
        actor = _request_actor(request)
    event = AuditEvent.objects.create(
        actor=actor,
        actor_username=actor.get_username() if actor is not None else "",
        action=action,
        object_type=object_type,
        object_id=str(object_id or ""),
        ip=_client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", "") if request is not None else "",
        metadata=metadata or {},
    )
    logger.info("audit %s %s:%s actor=%s", action, object_type, event.object_id, event.actor_id)
    return event

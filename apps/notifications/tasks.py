# apps/notifications/tasks.py
from __future__ import annotations

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from apps.announcements.models import Announcement
from apps.messaging.models import Message

from .models import Notification
from .services import notify


def _display(user) -> str:
    return getattr(user, "display_name", "") or user.get_username()


@shared_task(bind=True, max_retries=2)
def notify_message_recipients(self, message_id: int):
    """Tell each live recipient a message arrived."""
    if not getattr(settings, "NOTIFY_USERS", True):
        return {"skipped": True, "reason": "notifications disabled"}

    msg = Message.objects.select_related("sender").filter(pk=message_id).first()
    if msg is None:
        return {"skipped": True, "reason": "message not found", "message": message_id}

    user_ids = list(msg.recipients.filter(is_deleted=False).values_list("user_id", flat=True))
    created = notify(
        user_ids,
        title=f"New message from {_display(msg.sender)}",
        message=msg.subject or msg.preview,
        type="message",
        related_type="message",
        related_id=msg.pk,
        action_url=f"/messages/{msg.pk}",
        data={"thread": msg.thread_id},
    )
    return {"sent": len(created), "message": msg.pk}


@shared_task(bind=True, max_retries=2)
def notify_announcement_audience(self, announcement_id: int):
    """Fan a published announcement out to everyone it targets."""
    if not getattr(settings, "NOTIFY_USERS", True):
        return {"skipped": True, "reason": "notifications disabled"}

    ann = Announcement.objects.filter(pk=announcement_id, status="published").first()
    if ann is None:
        return {"skipped": True, "reason": "announcement not published", "announcement": announcement_id}

    priority = "high" if ann.priority in {"high", "critical"} else ann.priority
    created = notify(
        ann.audience().exclude(pk=ann.author_id).values_list("pk", flat=True),
        title=ann.title,
        message=ann.content[:1000],
        type="announcement",
        related_type="announcement",
        related_id=ann.pk,
        action_url=f"/announcements/{ann.pk}",
        priority=priority,
        expires_at=ann.end_date,
    )
    return {"sent": len(created), "announcement": ann.pk}


@shared_task(bind=True, max_retries=1)
def purge_expired_notifications(self):
    """Beat job: drop notifications whose expiry has passed."""
    deleted, _ = Notification.objects.filter(expires_at__lte=timezone.now()).delete()
    return {"deleted": deleted}

# apps/announcements/services.py
from __future__ import annotations

import logging

from apps.notifications.tasks import notify_announcement_audience
from apps.rbac.policy import Caller, authorize

from .models import Announcement, AnnouncementRead

logger = logging.getLogger(__name__)


def publish_announcement(caller: Caller, ann: Announcement) -> Announcement:
    """Publish and fan out notifications to the audience."""
    authorize(caller, "publish", ann)
    if ann.status == "published":
        return ann
    if not ann.has_audience():
        raise ValueError("At least one target audience must be specified.")
    ann.status = "published"
    ann.save(update_fields=["status", "updated_at"])
    logger.info("announcement %s published by %s", ann.pk, caller.id)
    notify_announcement_audience.delay(ann.pk)
    return ann


def archive_announcement(caller: Caller, ann: Announcement) -> Announcement:
    authorize(caller, "change", ann)
    ann.status = "archived"
    ann.save(update_fields=["status", "updated_at"])
    return ann


def mark_announcement_read(caller: Caller, ann: Announcement) -> AnnouncementRead:
    authorize(caller, "read", ann)
    read, _ = AnnouncementRead.objects.get_or_create(announcement=ann, user_id=caller.id)
    return read

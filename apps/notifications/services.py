# apps/notifications/services.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .models import Notification

logger = logging.getLogger(__name__)


def notify(
    users: Iterable,
    title: str,
    message: str,
    *,
    type: str = "system",
    related_type: str = "",
    related_id: Optional[int] = None,
    action_url: str = "",
    priority: str = "medium",
    expires_at=None,
    data: Optional[dict] = None,
) -> List[Notification]:
    """
    I create one notification per user (users or user ids, duplicates dropped)
    in a single insert.
    """
    user_ids = []
    for u in users:
        pk = getattr(u, "pk", u)
        if pk is not None and pk not in user_ids:
            user_ids.append(pk)
    if not user_ids:
        return []

    rows = [
        Notification(
            user_id=uid,
            title=title[:200],
            message=message[:1000],
            type=type,
            related_type=related_type,
            related_id=related_id,
            action_url=action_url,
            priority=priority,
            expires_at=expires_at,
            data=data or {},
        )
        for uid in user_ids
    ]
    created = Notification.objects.bulk_create(rows)
    logger.info("notified %d user(s): %s", len(created), title)
    return created

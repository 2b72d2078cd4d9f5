# apps/events/services.py
from __future__ import annotations

import logging
from typing import Dict

from django.db import transaction
from django.db.models import Count

from apps.rbac.policy import Caller, authorize

from .models import Attendance, Event

logger = logging.getLogger(__name__)


class RegistrationError(ValueError):
    """Registration refused (closed, full, cancelled)."""


@transaction.atomic
def register_attendee(event: Event, user) -> Event:
    # Lock the event row so two last-seat registrations can't both pass is_full().
    event = Event.objects.select_for_update().get(pk=event.pk)
    if event.attendees.filter(pk=user.pk).exists():
        return event
    if event.status == "cancelled":
        raise RegistrationError("Event has been cancelled.")
    if not event.is_registration_open():
        raise RegistrationError("Registration is closed for this event.")
    if event.is_full():
        raise RegistrationError("Event is full.")
    event.attendees.add(user)
    logger.info("user %s registered for event %s", user.pk, event.pk)
    return event


def unregister_attendee(event: Event, user) -> Event:
    event.attendees.remove(user)
    return event


def mark_attendance(caller: Caller, *, event: Event, user, status: str = "present", **fields) -> Attendance:
    """Create or update the (event, user) record. Marker identity comes from caller."""
    authorize(caller, "mark", event, "Only organizers and attendance managers can mark attendance.")
    record, created = Attendance.objects.get_or_create(
        event=event,
        user=user,
        defaults={"status": status, "marked_by_id": caller.id, **fields},
    )
    if not created:
        record.status = status
        record.marked_by_id = caller.id
        for name, value in fields.items():
            setattr(record, name, value)
        record.save()
    return record


def attendance_summary(event: Event) -> Dict[str, float]:
    rows = Attendance.objects.filter(event=event).values("status").annotate(n=Count("id")).order_by()
    counts = {row["status"]: row["n"] for row in rows}
    registered = event.attendees.count()
    recorded = sum(counts.values())
    attended = counts.get("present", 0) + counts.get("late", 0)
    denominator = registered or recorded
    return {
        "event": event.pk,
        "registered": registered,
        "recorded": recorded,
        "present": counts.get("present", 0),
        "late": counts.get("late", 0),
        "absent": counts.get("absent", 0),
        "excused": counts.get("excused", 0),
        "attendance_rate": round(attended / denominator, 4) if denominator else 0.0,
    }

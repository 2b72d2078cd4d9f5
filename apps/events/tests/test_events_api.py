from datetime import timedelta

import pytest
from django.core.exceptions import PermissionDenied
from django.urls import reverse
from django.utils import timezone

from apps.events.models import Attendance, Event
from apps.events.services import mark_attendance
from apps.rbac.policy import caller_for, is_allowed


def _event(organizer, **extra):
    start = timezone.now() + timedelta(days=2)
    fields = {
        "title": "Quarterly all-hands",
        "description": "Everyone welcome",
        "start": start,
        "end": start + timedelta(hours=2),
        "location": "Main hall",
        "organizer": organizer,
    }
    fields.update(extra)
    return Event.objects.create(**fields)


@pytest.mark.django_db
def test_event_manager_creates_event_and_becomes_organizer(make_user, auth_client):
    em = make_user(role="event_manager")
    start = timezone.now() + timedelta(days=1)
    payload = {
        "title": "Volunteer day",
        "description": "Park cleanup",
        "start": start.isoformat(),
        "end": (start + timedelta(hours=3)).isoformat(),
        "location": "Riverside",
    }
    r = auth_client(em).post(reverse("events_api:event-list"), payload, format="json")
    assert r.status_code == 201, r.content
    body = r.json()
    assert body["organizer"] == em.id
    assert body["duration_hours"] == 3
    assert body["attendee_count"] == 0


@pytest.mark.django_db
def test_plain_user_cannot_create_event(make_user, auth_client):
    user = make_user()
    start = timezone.now() + timedelta(days=1)
    r = auth_client(user).post(
        reverse("events_api:event-list"),
        {"title": "x", "description": "y", "start": start.isoformat(),
         "end": (start + timedelta(hours=1)).isoformat(), "location": "z"},
        format="json",
    )
    assert r.status_code == 403


@pytest.mark.django_db
def test_end_must_follow_start(make_user, auth_client):
    em = make_user(role="event_manager")
    start = timezone.now() + timedelta(days=1)
    r = auth_client(em).post(
        reverse("events_api:event-list"),
        {"title": "x", "description": "y", "start": start.isoformat(),
         "end": (start - timedelta(hours=1)).isoformat(), "location": "z"},
        format="json",
    )
    assert r.status_code == 400
    assert "end" in r.json()


@pytest.mark.django_db
def test_register_and_capacity(make_user, auth_client):
    org = make_user(role="event_manager")
    event = _event(org, max_attendees=1)
    first, second = make_user(), make_user()
    url = reverse("events_api:event-register", args=[event.id])

    r1 = auth_client(first).post(url)
    assert r1.status_code == 200, r1.content
    assert r1.json()["attendee_count"] == 1

    r2 = auth_client(second).post(url)
    assert r2.status_code == 400
    assert "full" in r2.json()["detail"].lower()

    # registering twice is a no-op
    assert auth_client(first).post(url).status_code == 200
    assert event.attendees.count() == 1


@pytest.mark.django_db
def test_registration_closed_after_deadline(make_user, auth_client):
    org = make_user(role="event_manager")
    event = _event(org, registration_deadline=timezone.now() - timedelta(minutes=1))
    r = auth_client(make_user()).post(reverse("events_api:event-register", args=[event.id]))
    assert r.status_code == 400


@pytest.mark.django_db
def test_unregister_and_attendees(make_user, auth_client):
    org = make_user(role="event_manager")
    event = _event(org)
    user = make_user(display_name="Ada")
    event.attendees.add(user)

    r = auth_client(org).get(reverse("events_api:event-attendees", args=[event.id]))
    assert [a["display_name"] for a in r.json()] == ["Ada"]

    r = auth_client(user).post(reverse("events_api:event-unregister", args=[event.id]))
    assert r.status_code == 200
    assert r.json()["attendee_count"] == 0


@pytest.mark.django_db
def test_only_organizer_or_admin_deletes(make_user, auth_client, admin_user):
    org = make_user(role="event_manager")
    other = make_user(role="event_manager")
    event = _event(org)
    url = reverse("events_api:event-detail", args=[event.id])
    assert auth_client(other).delete(url).status_code == 403
    assert auth_client(org).delete(url).status_code == 204


@pytest.mark.django_db
def test_organizer_marks_attendance_and_summary(make_user, auth_client):
    org = make_user()
    event = _event(org)
    a, b = make_user(), make_user()
    event.attendees.add(a, b)
    client = auth_client(org)
    url = reverse("events_api:attendance-list")

    r = client.post(url, {"event": event.id, "user": a.id, "status": "present"}, format="json")
    assert r.status_code == 201, r.content
    assert r.json()["marked_by"] == org.id

    # marking again updates the same record
    r = client.post(url, {"event": event.id, "user": a.id, "status": "late"}, format="json")
    assert r.status_code == 201
    assert Attendance.objects.filter(event=event, user=a).count() == 1

    client.post(url, {"event": event.id, "user": b.id, "status": "absent"}, format="json")

    s = client.get(reverse("events_api:event-attendance-summary", args=[event.id])).json()
    assert s["registered"] == 2
    assert s["late"] == 1 and s["absent"] == 1
    assert s["attendance_rate"] == 0.5


@pytest.mark.django_db
@pytest.mark.parametrize("role", ["attendance_manager", "manager"])
def test_marker_roles_mark_any_event(make_user, auth_client, role):
    event = _event(make_user(role="event_manager"))
    marker = make_user(role=role)
    attendee = make_user()
    r = auth_client(marker).post(
        reverse("events_api:attendance-list"),
        {"event": event.id, "user": attendee.id, "status": "excused"},
        format="json",
    )
    assert r.status_code == 201, r.content
    record = Attendance.objects.get(event=event, user=attendee)
    assert record.marked_by == marker
    assert record.check_out is not None


@pytest.mark.django_db
def test_mark_attendance_service_checks_the_event(make_user):
    org = make_user()
    event = _event(org)
    for marker in (org, make_user(role="attendance_manager"), make_user(role="manager")):
        assert is_allowed(caller_for(marker), "mark", event)
        record = mark_attendance(caller_for(marker), event=event, user=make_user())
        assert record.marked_by_id == marker.id

    with pytest.raises(PermissionDenied):
        mark_attendance(caller_for(make_user()), event=event, user=make_user())


@pytest.mark.django_db
def test_stranger_cannot_mark_attendance(make_user, auth_client):
    event = _event(make_user(role="event_manager"))
    stranger = make_user()
    r = auth_client(stranger).post(
        reverse("events_api:attendance-list"),
        {"event": event.id, "user": stranger.id},
        format="json",
    )
    assert r.status_code == 403


@pytest.mark.django_db
def test_absent_status_stamps_check_out(make_user):
    org = make_user()
    event = _event(org)
    record = Attendance.objects.create(event=event, user=make_user(), marked_by=org)
    assert record.check_out is None
    record.status = "excused"
    record.save()
    assert record.check_out is not None
    assert record.check_out >= record.check_in


@pytest.mark.django_db
def test_attendance_list_is_scoped(make_user, auth_client):
    org = make_user()
    event = _event(org)
    mine, theirs = make_user(), make_user()
    Attendance.objects.create(event=event, user=mine, marked_by=org)
    Attendance.objects.create(event=event, user=theirs, marked_by=org)

    r = auth_client(mine).get(reverse("events_api:attendance-list"))
    assert [row["user"] for row in r.json()["results"]] == [mine.id]

    r = auth_client(make_user(role="attendance_manager")).get(reverse("events_api:attendance-list"))
    assert r.json()["count"] == 2

    r = auth_client(mine).get(reverse("events_api:attendance-mine"))
    assert r.json()["count"] == 1


@pytest.mark.django_db
def test_check_out_once(make_user, auth_client):
    org = make_user()
    event = _event(org)
    record = Attendance.objects.create(event=event, user=make_user(), marked_by=org)
    url = reverse("events_api:attendance-check-out", args=[record.id])
    client = auth_client(org)
    assert client.post(url).status_code == 200
    assert client.post(url).status_code == 400

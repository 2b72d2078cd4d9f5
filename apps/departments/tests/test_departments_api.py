import pytest
from django.urls import reverse

from apps.audit.models import AuditEvent
from apps.departments.models import Department


@pytest.mark.django_db
def test_admin_creates_department_head_becomes_member(make_user, auth_client, admin_user):
    head = make_user(role="department_head")
    r = auth_client(admin_user).post(
        reverse("departments_api:department-list"),
        {"name": "  Outreach ", "description": "Community work", "head": head.id},
        format="json",
    )
    assert r.status_code == 201, r.content
    body = r.json()
    assert body["name"] == "Outreach"
    assert head.id in body["members"]
    assert body["member_count"] == 1
    assert AuditEvent.objects.filter(action="department.create", object_id=str(body["id"])).exists()


@pytest.mark.django_db
def test_non_admin_cannot_create(make_user, auth_client):
    manager = make_user(role="manager")
    r = auth_client(manager).post(
        reverse("departments_api:department-list"),
        {"name": "Ops", "head": manager.id},
        format="json",
    )
    assert r.status_code == 403


@pytest.mark.django_db
def test_everyone_can_list(make_user, auth_client):
    head = make_user(role="department_head")
    Department.objects.create(name="Choir", head=head)
    Department.objects.create(name="Archive", head=head, is_active=False)
    client = auth_client(make_user())

    r = client.get(reverse("departments_api:department-list"))
    assert r.status_code == 200
    assert [d["name"] for d in r.json()["results"]] == ["Archive", "Choir"]

    r = client.get(reverse("departments_api:department-list"), {"active": "true"})
    assert [d["name"] for d in r.json()["results"]] == ["Choir"]


@pytest.mark.django_db
def test_head_manages_members_but_cannot_remove_self(make_user, auth_client):
    head = make_user(role="department_head")
    dept = Department.objects.create(name="Media", head=head)
    member = make_user()
    client = auth_client(head)

    r = client.post(reverse("departments_api:department-add-member", args=[dept.id]), {"user": member.id}, format="json")
    assert r.status_code == 200, r.content
    assert r.json()["member_count"] == 2

    r = client.post(reverse("departments_api:department-remove-member", args=[dept.id]), {"user": head.id}, format="json")
    assert r.status_code == 400

    r = client.post(reverse("departments_api:department-remove-member", args=[dept.id]), {"user": member.id}, format="json")
    assert r.status_code == 200
    assert r.json()["member_count"] == 1


@pytest.mark.django_db
def test_other_users_cannot_manage_members(make_user, auth_client):
    dept = Department.objects.create(name="Youth", head=make_user(role="department_head"))
    outsider = make_user(role="department_head")
    r = auth_client(outsider).post(
        reverse("departments_api:department-add-member", args=[dept.id]),
        {"user": outsider.id},
        format="json",
    )
    assert r.status_code == 403


@pytest.mark.django_db
def test_member_replace_keeps_head(make_user, auth_client, admin_user):
    head = make_user(role="department_head")
    dept = Department.objects.create(name="Finance", head=head)
    other = make_user()
    r = auth_client(admin_user).patch(
        reverse("departments_api:department-detail", args=[dept.id]),
        {"members": [other.id]},
        format="json",
    )
    assert r.status_code == 200
    assert set(r.json()["members"]) == {head.id, other.id}

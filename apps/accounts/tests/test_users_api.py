import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse

from apps.audit.models import AuditEvent


@pytest.mark.django_db
def test_register_always_creates_plain_user(api_client):
    r = api_client.post(
        reverse("accounts_api:register"),
        {"username": "ada", "email": "Ada@Example.org", "password": "a-long-passphrase", "role": "admin"},
        format="json",
    )
    assert r.status_code == 201, r.content
    user = get_user_model().objects.get(username="ada")
    assert user.role == "user"
    assert user.email == "ada@example.org"
    assert user.check_password("a-long-passphrase")
    assert AuditEvent.objects.by(user).filter(action="auth.register").exists()


@pytest.mark.django_db
def test_register_rejects_weak_password_and_duplicate_email(api_client, make_user):
    make_user(email="taken@example.org")
    r = api_client.post(
        reverse("accounts_api:register"),
        {"username": "bob", "email": "bob@example.org", "password": "123"},
        format="json",
    )
    assert r.status_code == 400

    r = api_client.post(
        reverse("accounts_api:register"),
        {"username": "bob", "email": "TAKEN@example.org", "password": "a-long-passphrase"},
        format="json",
    )
    assert r.status_code == 400
    assert "email" in r.json()


@pytest.mark.django_db
def test_change_password(make_user, auth_client):
    user = make_user()
    client = auth_client(user)
    url = reverse("accounts_api:change-password")

    r = client.post(url, {"old_password": "wrong", "new_password": "another-long-one"}, format="json")
    assert r.status_code == 400

    r = client.post(url, {"old_password": "pass12345!", "new_password": "another-long-one"}, format="json")
    assert r.status_code == 204
    user.refresh_from_db()
    assert user.check_password("another-long-one")


@pytest.mark.django_db
def test_user_directory_is_for_managers(make_user, auth_client):
    user = make_user()
    manager = make_user(role="manager")

    assert auth_client(user).get(reverse("accounts_api:user-list")).status_code == 403
    r = auth_client(manager).get(reverse("accounts_api:user-list"), {"role": "user"})
    assert r.status_code == 200
    assert [row["username"] for row in r.json()["results"]] == [user.username]

    assert auth_client(user).get(reverse("accounts_api:user-detail", args=[user.id])).status_code == 200
    assert auth_client(user).get(reverse("accounts_api:user-detail", args=[manager.id])).status_code == 403


@pytest.mark.django_db
def test_only_admin_changes_roles(make_user, auth_client, admin_user):
    user = make_user()
    url = reverse("accounts_api:user-detail", args=[user.id])

    r = auth_client(user).patch(url, {"display_name": "Me"}, format="json")
    assert r.status_code == 200

    r = auth_client(user).patch(url, {"role": "manager"}, format="json")
    assert r.status_code == 400
    assert "role" in r.json()

    r = auth_client(admin_user).patch(url, {"role": "manager"}, format="json")
    assert r.status_code == 200
    user.refresh_from_db()
    assert user.role == "manager"
    assert AuditEvent.objects.about("User", user.id).filter(action="user.update").exists()


@pytest.mark.django_db
def test_admin_creates_and_deletes_users(make_user, auth_client, admin_user):
    client = auth_client(admin_user)
    r = client.post(
        reverse("accounts_api:user-list"),
        {"username": "fin", "email": "fin@example.org", "password": "a-long-passphrase", "role": "finance_manager"},
        format="json",
    )
    assert r.status_code == 201, r.content
    assert "password" not in r.json()
    created = get_user_model().objects.get(username="fin")
    assert created.role == "finance_manager"

    manager = make_user(role="manager")
    assert auth_client(manager).delete(reverse("accounts_api:user-detail", args=[created.id])).status_code == 403
    assert client.delete(reverse("accounts_api:user-detail", args=[created.id])).status_code == 204


@pytest.mark.django_db
def test_audit_trail_keeps_actor_name_after_user_is_gone(make_user, auth_client, admin_user):
    doomed = make_user(role="manager")
    auth_client(doomed).patch(
        reverse("accounts_api:user-detail", args=[doomed.id]), {"display_name": "Soon gone"}, format="json"
    )
    auth_client(admin_user).delete(reverse("accounts_api:user-detail", args=[doomed.id]))

    edit = AuditEvent.objects.about("User", doomed.id).get(action="user.update")
    assert edit.actor is None
    assert edit.actor_username == doomed.username
    assert str(edit) == f"user.update User:{doomed.id} by {doomed.username}"
    assert AuditEvent.objects.about("User", doomed.id).get(action="user.delete").actor_username == "root"

import pytest
from django.urls import reverse
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from apps.audit.models import AuditEvent


@pytest.mark.django_db
def test_jwt_login_and_whoami():
    # create a user we can log in with
    U = get_user_model()
    U.objects.create_user(username="apiuser", password="pass12345!", role="event_manager")

    client = APIClient()

    # 1) obtain token
    res = client.post(reverse("token_obtain_pair"), {"username": "apiuser", "password": "pass12345!"}, format="json")
    assert res.status_code == 200, res.content
    access = res.json()["access"]

    # 2) use Bearer token to hit a protected endpoint
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    r2 = client.get(reverse("accounts_api:whoami"))
    assert r2.status_code == 200, r2.content
    body = r2.json()
    assert body["username"] == "apiuser"
    assert body["role"] == "event_manager"


@pytest.mark.django_db
def test_refresh_token():
    get_user_model().objects.create_user(username="refresher", password="pass12345!")
    client = APIClient()
    tokens = client.post(reverse("token_obtain_pair"), {"username": "refresher", "password": "pass12345!"}, format="json").json()
    r = client.post(reverse("token_refresh"), {"refresh": tokens["refresh"]}, format="json")
    assert r.status_code == 200
    assert "access" in r.json()


@pytest.mark.django_db
def test_whoami_requires_auth():
    assert APIClient().get(reverse("accounts_api:whoami")).status_code == 401


@pytest.mark.django_db
def test_failed_login_is_audited():
    get_user_model().objects.create_user(username="apiuser", password="pass12345!")
    res = APIClient().post(reverse("token_obtain_pair"), {"username": "apiuser", "password": "nope"}, format="json")
    assert res.status_code == 401
    assert AuditEvent.objects.filter(action="auth.login_failed", object_id="apiuser").exists()

import itertools

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

_seq = itertools.count(1)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory: make_user(role="manager", **extra) -> User."""
    User = get_user_model()

    def _make(role="user", username=None, password="pass12345!", **extra):
        username = username or f"{role}{next(_seq)}"
        extra.setdefault("email", f"{username}@example.org")
        return User.objects.create_user(username=username, password=password, role=role, **extra)

    return _make


@pytest.fixture
def auth_client():
    """Factory: auth_client(user) -> APIClient authenticated as user."""

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client


@pytest.fixture
def admin_user(make_user):
    return make_user(role="admin", username="root")

from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Project user model.
    - display_name: lightweight label you can show in UI
    - role: single organization role, consumed by apps.rbac.policy
    - department: home department (optional; membership lives on Department)
    """

    ROLE_CHOICES = [
        ("admin", "Administrator"),
        ("manager", "Manager"),
        ("department_head", "Department head"),
        ("event_manager", "Event manager"),
        ("finance_manager", "Finance manager"),
        ("report_manager", "Report manager"),
        ("attendance_manager", "Attendance manager"),
        ("communication_manager", "Communication manager"),
        ("moderator", "Moderator"),
        ("user", "User"),
    ]

    display_name = models.CharField(max_length=150, blank=True, default="")
    role = models.CharField(max_length=32, choices=ROLE_CHOICES, default="user", db_index=True)
    department = models.ForeignKey(
        "departments.Department",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="staff",
    )

    def __str__(self) -> str:  # type: ignore[override]
        return self.display_name or self.get_full_name() or self.username

    @property
    def is_admin(self) -> bool:
        return self.is_superuser or self.role == "admin"

# apps/notifications/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class NotificationQuerySet(models.QuerySet):
    def live(self, now=None):
        now = now or timezone.now()
        return self.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))

    def unread(self):
        return self.filter(is_read=False)

    def mark_read(self) -> int:
        return self.filter(is_read=False).update(is_read=True, read_at=timezone.now())


class Notification(models.Model):
    TYPE_CHOICES = [
        ("message", "Message"),
        ("announcement", "Announcement"),
        ("event", "Event"),
        ("system", "System"),
        ("report", "Report"),
        ("approval", "Approval"),
        ("reminder", "Reminder"),
    ]
    PRIORITY_CHOICES = [
        ("low", "Low"),
        ("medium", "Medium"),
        ("high", "High"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    title = models.CharField(max_length=200)
    message = models.CharField(max_length=1000)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="system")
    related_type = models.CharField(max_length=50, blank=True, default="")
    related_id = models.BigIntegerField(null=True, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    action_url = models.CharField(max_length=500, blank=True, default="")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="medium")
    expires_at = models.DateTimeField(null=True, blank=True)
    data = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["user", "is_read", "-created_at"]),
            models.Index(fields=["expires_at"]),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.user_id}: {self.title}"

    def save(self, *args, **kwargs):
        if self.is_read and not self.read_at:
            self.read_at = timezone.now()
        elif not self.is_read:
            self.read_at = None
        if kwargs.get("update_fields") is not None and "is_read" in kwargs["update_fields"]:
            kwargs["update_fields"] = {*kwargs["update_fields"], "read_at"}
        super().save(*args, **kwargs)

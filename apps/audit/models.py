from django.conf import settings
from django.db import models


class AuditEventQuerySet(models.QuerySet):
    def about(self, object_type: str, object_id):
        return self.filter(object_type=object_type, object_id=str(object_id))

    def by(self, user):
        return self.filter(actor=user)


class AuditEvent(models.Model):
    """
    Append-only trail of security-relevant actions: auth events, role changes,
    membership edits, approvals, report runs and deletes.
    """

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_events",
    )
    # survives the actor being deleted
    actor_username = models.CharField(max_length=150, blank=True, default="")
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, default="")
    object_id = models.CharField(max_length=64, blank=True, default="")
    ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    metadata = models.JSONField(blank=True, default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["object_type", "object_id", "created_at"]),
            models.Index(fields=["action", "created_at"]),
            models.Index(fields=["actor", "created_at"]),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        who = self.actor_username or "system"
        return f"{self.action} {self.object_type}:{self.object_id} by {who}"

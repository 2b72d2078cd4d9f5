# apps/messaging/models.py
from django.conf import settings
from django.db import models

from .threads import finalize_thread, resolve_thread

PREVIEW_LENGTH = 100


class Message(models.Model):
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="messages_sent",
    )
    subject = models.CharField(max_length=200, blank=True, default="")
    body = models.TextField(blank=True, default="")

    # No DB constraint: a reply may point at a message that no longer exists.
    parent_message = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="replies",
    )
    # replies keep the root id even after the root row is purged
    thread = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="thread_messages",
    )
    is_thread = models.BooleanField(default=False)

    is_draft = models.BooleanField(default=False)
    is_pinned = models.BooleanField(default=False)
    is_starred = models.BooleanField(default=False)
    labels = models.JSONField(default=list, blank=True)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    deleted_by_sender = models.BooleanField(default=False)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["sender", "is_draft"]),
            models.Index(fields=["thread", "created_at"]),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return self.subject or f"Message {self.pk}"

    def save(self, *args, **kwargs):
        if resolve_thread(self) and kwargs.get("update_fields") is not None:
            kwargs["update_fields"] = {*kwargs["update_fields"], "thread", "is_thread"}
        super().save(*args, **kwargs)
        finalize_thread(self)

    @property
    def preview(self) -> str:
        body = self.body or ""
        if len(body) > PREVIEW_LENGTH:
            return body[:PREVIEW_LENGTH] + "..."
        return body

    @property
    def reply_count(self) -> int:
        return Message.objects.filter(thread_id=self.pk).exclude(pk=self.pk).count()

    def entry_for(self, user_id):
        """The recipient row for ``user_id`` or None."""
        return self.recipients.filter(user_id=user_id).first()


class MessageRecipient(models.Model):
    message = models.ForeignKey(Message, on_delete=models.CASCADE, related_name="recipients")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_entries",
    )
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    is_starred = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(name="uniq_recipient_per_message", fields=["message", "user"]),
        ]
        indexes = [
            models.Index(fields=["user", "is_deleted", "is_read"]),
        ]
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.user_id} <- {self.message_id}"

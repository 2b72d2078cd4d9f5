# apps/messaging/services.py
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.notifications.tasks import notify_message_recipients
from apps.rbac.policy import Caller, authorize, is_allowed

from .models import Message, MessageRecipient

logger = logging.getLogger(__name__)

FOLDERS = ("inbox", "sent", "draft", "starred")

SENDER_FIELDS = {"subject", "body", "is_draft", "is_pinned", "is_starred", "labels"}
RECIPIENT_FIELDS = {"is_read", "is_starred", "is_deleted"}


def _normalize_labels(labels: Iterable[str]) -> list:
    out = []
    for label in labels or ():
        label = (label or "").strip().lower()
        if label and label not in out:
            out.append(label)
    return out


def _recipient_ids(recipients) -> list:
    ids = []
    for r in recipients or ():
        pk = getattr(r, "pk", r)
        if pk is not None and pk not in ids:
            ids.append(int(pk))
    return ids


def _check_recipients(ids: list) -> None:
    found = set(get_user_model().objects.filter(pk__in=ids, is_active=True).values_list("pk", flat=True))
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValueError(f"Unknown recipient(s): {', '.join(map(str, missing))}")


def _mark_read(entries) -> int:
    return entries.filter(is_read=False).update(is_read=True, read_at=timezone.now())


def send_message(
    caller: Caller,
    recipients,
    subject: str,
    body: str,
    is_draft: bool = False,
    parent_message_id: Optional[int] = None,
    labels: Iterable[str] = (),
    scheduled_at=None,
    metadata: Optional[dict] = None,
) -> Message:
    """
    Create a message and its recipient entries in one transaction.

    Drafts may be incomplete; a real send needs at least one recipient, a
    subject and a body. Replying to a message the caller can't see is
    refused; replying to one that doesn't exist yields a standalone message.
    """
    authorize(caller, "create", "message")
    subject = (subject or "").strip()
    body = (body or "").strip()
    ids = _recipient_ids(recipients)

    if not is_draft:
        if not ids:
            raise ValueError("At least one recipient is required.")
        if not subject:
            raise ValueError("Subject is required.")
        if not body:
            raise ValueError("Body is required.")
    if ids:
        _check_recipients(ids)

    if parent_message_id:
        parent = Message.objects.filter(pk=parent_message_id).first()
        if parent is not None and not is_allowed(caller, "view", parent):
            raise PermissionDenied("You cannot reply to this message.")

    with transaction.atomic():
        message = Message.objects.create(
            sender_id=caller.id,
            subject=subject,
            body=body,
            is_draft=is_draft,
            parent_message_id=parent_message_id or None,
            labels=_normalize_labels(labels),
            scheduled_at=scheduled_at,
            metadata=metadata or {},
        )
        MessageRecipient.objects.bulk_create(
            [MessageRecipient(message=message, user_id=uid) for uid in ids]
        )

    logger.info("message %s from %s to %d recipient(s) draft=%s", message.pk, caller.id, len(ids), is_draft)
    if not is_draft:
        notify_message_recipients.delay(message.pk)
    return message


def mailbox(caller: Caller, folder: str = "inbox", q: str = ""):
    """The caller's messages in ``folder`` (inbox, sent, draft, starred)."""
    if folder not in FOLDERS:
        raise ValueError(f"Unknown folder '{folder}'. Use one of: {', '.join(FOLDERS)}.")

    qs = Message.objects.select_related("sender")
    if folder == "inbox":
        qs = qs.filter(recipients__user_id=caller.id, recipients__is_deleted=False, is_draft=False)
    elif folder == "sent":
        qs = qs.filter(sender_id=caller.id, is_draft=False, deleted_by_sender=False)
    elif folder == "draft":
        qs = qs.filter(sender_id=caller.id, is_draft=True, deleted_by_sender=False)
    else:
        qs = qs.filter(
            recipients__user_id=caller.id,
            recipients__is_starred=True,
            recipients__is_deleted=False,
        )

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(subject__icontains=q)
            | Q(body__icontains=q)
            | Q(sender__username__icontains=q)
            | Q(sender__email__icontains=q)
        )
    return qs.distinct().order_by("-is_pinned", "-created_at", "-id")


def open_message(caller: Caller, message: Message) -> Message:
    authorize(caller, "view", message)
    _mark_read(message.recipients.filter(user_id=caller.id))
    return message


def thread_messages(caller: Caller, root: Message):
    """Root plus every reply, oldest first, limited to what the caller may see."""
    authorize(caller, "view", root)
    root_id = root.thread_id or root.pk
    visible = Q(sender_id=caller.id, deleted_by_sender=False) | Q(
        recipients__user_id=caller.id, recipients__is_deleted=False
    )
    qs = (
        Message.objects.select_related("sender")
        .filter(Q(pk=root_id) | Q(thread_id=root_id))
        .filter(visible)
        .distinct()
        .order_by("created_at", "id")
    )
    ids = list(qs.values_list("pk", flat=True))
    _mark_read(MessageRecipient.objects.filter(user_id=caller.id, message_id__in=ids))
    return qs


@transaction.atomic
def update_message(caller: Caller, message: Message, changes: Mapping) -> Message:
    """
    Apply ``changes`` as the sender (message fields, recipients while a draft)
    or as a recipient (their own read/star/delete flags).
    """
    authorize(caller, "change", message)
    changes = dict(changes)

    if message.sender_id == caller.id:
        fields = {k: v for k, v in changes.items() if k in SENDER_FIELDS}
        recipients = changes.get("recipients")
        if recipients is not None and not message.is_draft:
            raise ValueError("Recipients can only be changed on drafts.")
        if not fields and recipients is None:
            raise ValueError("No valid fields to update.")

        if "labels" in fields:
            fields["labels"] = _normalize_labels(fields["labels"])
        for name, value in fields.items():
            setattr(message, name, value.strip() if name in {"subject", "body"} else value)

        if recipients is not None:
            ids = _recipient_ids(recipients)
            _check_recipients(ids)
            message.recipients.exclude(user_id__in=ids).delete()
            existing = set(message.recipients.values_list("user_id", flat=True))
            MessageRecipient.objects.bulk_create(
                [MessageRecipient(message=message, user_id=uid) for uid in ids if uid not in existing]
            )

        sending = "is_draft" in fields and not fields["is_draft"]
        if sending:
            if not message.recipients.exists() or not message.subject or not message.body:
                raise ValueError("A message needs recipients, a subject and a body before it is sent.")
        message.save()
        if sending:
            transaction.on_commit(lambda: notify_message_recipients.delay(message.pk))
        return message

    entry = message.recipients.filter(user_id=caller.id).first()
    fields = {k: bool(v) for k, v in changes.items() if k in RECIPIENT_FIELDS}
    if entry is None or not fields:
        raise ValueError("No valid fields to update.")
    for name, value in fields.items():
        setattr(entry, name, value)
    if "is_read" in fields:
        entry.read_at = timezone.now() if fields["is_read"] else None
    entry.save()
    _purge_if_abandoned(message)
    return message


def _purge_if_abandoned(message: Message) -> bool:
    """Drop the row once the sender and every recipient have deleted it."""
    if not message.deleted_by_sender:
        return False
    if message.recipients.filter(is_deleted=False).exists():
        return False
    logger.info("message %s deleted by everyone; removing", message.pk)
    message.delete()
    return True


@transaction.atomic
def delete_message(caller: Caller, message: Message, hard: bool = False) -> bool:
    """
    Delete from the caller's point of view. Returns True when the row itself
    was removed.
    """
    authorize(caller, "delete", message)

    if message.sender_id == caller.id:
        message.deleted_by_sender = True
        message.save(update_fields=["deleted_by_sender", "updated_at"])
        if hard:
            message.recipients.update(is_deleted=True)
    else:
        updated = message.recipients.filter(user_id=caller.id).update(is_deleted=True)
        if not updated:
            raise PermissionDenied("You are not a recipient of this message.")

    return _purge_if_abandoned(message)

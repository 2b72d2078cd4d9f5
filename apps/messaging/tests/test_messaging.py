import pytest
from django.core.exceptions import PermissionDenied
from django.urls import reverse

from apps.messaging.models import Message, MessageRecipient
from apps.messaging.services import delete_message, mailbox, send_message, update_message
from apps.notifications.models import Notification
from apps.rbac.policy import caller_for


@pytest.fixture
def trio(make_user):
    return make_user(username="alice"), make_user(username="bob"), make_user(username="carol")


@pytest.mark.django_db
def test_send_validates_non_drafts(trio):
    alice, bob, _ = trio
    me = caller_for(alice)
    with pytest.raises(ValueError):
        send_message(me, [], "Hi", "there")
    with pytest.raises(ValueError):
        send_message(me, [bob.id], "", "there")
    with pytest.raises(ValueError):
        send_message(me, [bob.id], "Hi", "  ")
    with pytest.raises(ValueError):
        send_message(me, [424242], "Hi", "there")

    draft = send_message(me, [], "", "", is_draft=True)
    assert draft.is_draft and draft.recipients.count() == 0


@pytest.mark.django_db
def test_send_notifies_recipients(trio):
    alice, bob, carol = trio
    msg = send_message(caller_for(alice), [bob, carol.id, bob.id], "Lunch", "Noon?", labels=[" Social ", "social"])
    assert set(msg.recipients.values_list("user_id", flat=True)) == {bob.id, carol.id}
    assert msg.labels == ["social"]
    assert Notification.objects.filter(type="message", related_id=msg.id).count() == 2


@pytest.mark.django_db
def test_folders(trio):
    alice, bob, carol = trio
    sent = send_message(caller_for(alice), [bob.id], "Budget", "Numbers attached")
    draft = send_message(caller_for(alice), [bob.id], "WIP", "", is_draft=True)

    assert list(mailbox(caller_for(bob), "inbox")) == [sent]
    assert list(mailbox(caller_for(alice), "sent")) == [sent]
    assert list(mailbox(caller_for(alice), "draft")) == [draft]
    assert list(mailbox(caller_for(bob), "draft")) == []
    assert list(mailbox(caller_for(carol), "inbox")) == []

    MessageRecipient.objects.filter(message=sent, user=bob).update(is_starred=True)
    assert list(mailbox(caller_for(bob), "starred")) == [sent]

    assert list(mailbox(caller_for(bob), "inbox", q="alice")) == [sent]
    assert list(mailbox(caller_for(bob), "inbox", q="nothing-like-this")) == []

    with pytest.raises(ValueError):
        mailbox(caller_for(bob), "trash")


@pytest.mark.django_db
def test_reply_to_invisible_parent_is_refused(trio):
    alice, bob, carol = trio
    private = send_message(caller_for(alice), [bob.id], "Private", "Just us")
    with pytest.raises(PermissionDenied):
        send_message(caller_for(carol), [alice.id], "Re: Private", "Hi", parent_message_id=private.id)


@pytest.mark.django_db
def test_reply_to_missing_parent_is_standalone(trio):
    alice, bob, _ = trio
    msg = send_message(caller_for(alice), [bob.id], "Re: ?", "Hello", parent_message_id=999999)
    msg.refresh_from_db()
    assert msg.thread_id is None


@pytest.mark.django_db
def test_recipient_delete_is_soft_then_row_goes_when_everyone_deleted(trio):
    alice, bob, carol = trio
    msg = send_message(caller_for(alice), [bob.id, carol.id], "Hi", "All")

    assert delete_message(caller_for(bob), msg) is False
    assert list(mailbox(caller_for(bob), "inbox")) == []
    assert list(mailbox(caller_for(carol), "inbox")) == [msg]

    assert delete_message(caller_for(alice), msg) is False
    assert list(mailbox(caller_for(alice), "sent")) == []
    assert Message.objects.filter(pk=msg.pk).exists()

    assert delete_message(caller_for(carol), msg) is True
    assert not Message.objects.filter(pk=msg.pk).exists()


@pytest.mark.django_db
def test_sender_hard_delete_removes_for_everyone(trio):
    alice, bob, carol = trio
    msg = send_message(caller_for(alice), [bob.id, carol.id], "Oops", "Wrong list")
    assert delete_message(caller_for(alice), msg, hard=True) is True
    assert not Message.objects.filter(pk=msg.pk).exists()


@pytest.mark.django_db
def test_strangers_cannot_delete(trio):
    alice, bob, carol = trio
    msg = send_message(caller_for(alice), [bob.id], "Hi", "Bob")
    with pytest.raises(PermissionDenied):
        delete_message(caller_for(carol), msg)


@pytest.mark.django_db
def test_update_rules(trio):
    alice, bob, _ = trio
    msg = send_message(caller_for(alice), [bob.id], "Hi", "Bob")

    update_message(caller_for(alice), msg, {"subject": "Hello", "is_pinned": True})
    msg.refresh_from_db()
    assert msg.subject == "Hello" and msg.is_pinned

    with pytest.raises(ValueError):
        update_message(caller_for(alice), msg, {"recipients": [bob.id]})  # not a draft

    # recipients can only touch their own entry
    with pytest.raises(ValueError):
        update_message(caller_for(bob), msg, {"subject": "Hijacked"})
    update_message(caller_for(bob), msg, {"is_read": True, "is_starred": True})
    entry = msg.recipients.get(user=bob)
    assert entry.is_read and entry.read_at is not None and entry.is_starred


@pytest.mark.django_db
def test_api_send_open_and_thread(trio, auth_client):
    alice, bob, _ = trio
    a_client, b_client = auth_client(alice), auth_client(bob)
    url = reverse("messaging_api:message-list")

    r = a_client.post(url, {"recipients": [bob.id], "subject": "Plan", "body": "Let's meet"}, format="json")
    assert r.status_code == 201, r.content
    root_id = r.json()["id"]

    r = b_client.get(url)
    assert r.json()["count"] == 1
    assert r.json()["results"][0]["is_read"] is False

    r = b_client.get(reverse("messaging_api:message-detail", args=[root_id]))
    assert r.status_code == 200
    assert r.json()["is_read"] is True

    r = b_client.post(url, {"recipients": [alice.id], "subject": "Re: Plan", "body": "Sure",
                            "parent_message_id": root_id}, format="json")
    assert r.status_code == 201
    assert r.json()["thread"] == root_id

    r = a_client.get(reverse("messaging_api:message-thread", args=[root_id]))
    assert [m["id"] for m in r.json()] == [root_id, r.json()[1]["id"]]
    assert r.json()[0]["is_thread"] is True
    assert r.json()[0]["reply_count"] == 1


@pytest.mark.django_db
def test_api_validation_and_folders(trio, auth_client):
    alice, bob, _ = trio
    client = auth_client(alice)
    url = reverse("messaging_api:message-list")
    assert client.post(url, {"recipients": [bob.id], "subject": "", "body": "x"}, format="json").status_code == 400
    assert client.get(url, {"folder": "bogus"}).status_code == 400

    client.post(url, {"subject": "Draft", "is_draft": True}, format="json")
    r = client.get(url, {"folder": "draft"})
    assert [m["subject"] for m in r.json()["results"]] == ["Draft"]


@pytest.mark.django_db
def test_api_delete_flows(trio, auth_client):
    alice, bob, carol = trio
    msg = send_message(caller_for(alice), [bob.id], "Hi", "Bob")
    detail = reverse("messaging_api:message-detail", args=[msg.id])

    assert auth_client(carol).get(detail).status_code == 403
    assert auth_client(bob).delete(detail).status_code == 204
    assert MessageRecipient.objects.get(message=msg, user=bob).is_deleted

    assert auth_client(alice).delete(detail + "?hard_delete=true").status_code == 204
    assert not Message.objects.filter(pk=msg.id).exists()

import pytest

from apps.messaging.models import Message
from apps.messaging.services import delete_message, send_message
from apps.rbac.policy import caller_for


def _msg(sender, **extra):
    return Message.objects.create(sender=sender, subject="s", body="b", **extra)


@pytest.mark.django_db
def test_replies_converge_on_root(make_user):
    u = make_user()
    a = _msg(u)
    b = _msg(u, parent_message=a)
    c = _msg(u, parent_message=b)

    a.refresh_from_db()
    b.refresh_from_db()
    assert b.thread_id == a.id
    assert c.thread_id == a.id
    assert a.is_thread is True
    assert b.is_thread is True  # immediate parent of c
    assert c.is_thread is False
    assert a.reply_count == 2


@pytest.mark.django_db
def test_root_flag_set_on_first_reply_only(make_user):
    u = make_user()
    a = _msg(u)
    assert Message.objects.get(pk=a.pk).is_thread is False
    _msg(u, parent_message=a)
    assert Message.objects.get(pk=a.pk).is_thread is True
    # idempotent on further replies
    _msg(u, parent_message=a)
    assert Message.objects.get(pk=a.pk).is_thread is True


@pytest.mark.django_db
def test_missing_parent_saves_standalone(make_user):
    m = _msg(make_user(), parent_message_id=987654)
    m.refresh_from_db()
    assert m.pk is not None
    assert m.thread_id is None
    assert m.parent_message_id == 987654


@pytest.mark.django_db
def test_root_saved_again_points_at_itself(make_user):
    u = make_user()
    a = _msg(u)
    _msg(u, parent_message=a)
    a.refresh_from_db()
    a.save()
    a.refresh_from_db()
    assert a.thread_id == a.id


@pytest.mark.django_db
def test_explicit_thread_is_left_alone(make_user):
    u = make_user()
    a = _msg(u)
    other = _msg(u)
    b = _msg(u, parent_message=a, thread=other)
    assert b.thread_id == other.id


def test_preview_truncates_long_bodies():
    assert Message(body="x" * 150).preview == "x" * 100 + "..."
    assert Message(body="short").preview == "short"


@pytest.mark.django_db
def test_replies_keep_root_after_root_is_purged(make_user):
    alice, bob = make_user(), make_user()
    root = send_message(caller_for(alice), [bob.id], "Plan", "Draft plan")
    reply = send_message(caller_for(bob), [alice.id], "Re: Plan", "Looks good", parent_message_id=root.id)
    assert reply.thread_id == root.id

    delete_message(caller_for(bob), root)
    assert delete_message(caller_for(alice), root) is True
    assert not Message.objects.filter(pk=root.pk).exists()

    reply.refresh_from_db()
    assert reply.thread_id == root.id

    later = send_message(caller_for(alice), [bob.id], "Re: Re: Plan", "Agreed", parent_message_id=reply.id)
    assert later.thread_id == root.id
    assert set(Message.objects.filter(thread_id=root.id).values_list("pk", flat=True)) == {reply.id, later.id}

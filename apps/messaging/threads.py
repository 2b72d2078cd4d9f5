# apps/messaging/threads.py
"""
Reply-chain bookkeeping for messages.

Every reply carries the id of the chain's root in ``thread``, however deep
the reply sits. A message becomes ``is_thread`` once something replies to it.

``resolve_thread`` runs before the row is written, ``finalize_thread`` after.
Neither locks: the parent update only ever sets ``is_thread=True``, so two
concurrent replies write the same value.
"""
import logging

logger = logging.getLogger(__name__)


def resolve_thread(message) -> bool:
    """
    Point a reply at its root. Returns True when ``thread``/``is_thread``
    were set. A parent that can't be found leaves the message standalone.
    """
    if not message.parent_message_id or message.thread_id:
        return False

    manager = type(message)._default_manager
    parent = manager.filter(pk=message.parent_message_id).only("pk", "thread").first()
    if parent is None:
        logger.info("parent message %s not found; saving standalone", message.parent_message_id)
        return False

    message.thread_id = parent.thread_id or parent.pk
    message.is_thread = False
    return True


def finalize_thread(message) -> None:
    manager = type(message)._default_manager
    if message.is_thread and not message.thread_id:
        # a root marks itself so lookups by thread include it
        message.thread_id = message.pk
        manager.filter(pk=message.pk).update(thread=message)
    elif message.parent_message_id:
        manager.filter(pk=message.parent_message_id).update(is_thread=True)

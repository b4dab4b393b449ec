"""Notification feed, read state, deletion, cascade and preferences."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from episodic.db.models.intent import NotificationIntentRow
from episodic.errors.exceptions import NotFoundError, PermissionDeniedError, UnauthorizedError
from episodic.repositories.notification_repo import NotificationRepository
from episodic.services.engine import build_engine


async def _compose(engine, recipient, event_type, sender, entity=None, message="m"):
    return await engine.composer.compose_or_merge(recipient, event_type, sender, entity, message)


async def test_notify_on_event_skips_self(engine, session_factory):
    assert await engine.notify_on_event("u1", "NEW_FOLLOWER", sender_id="u1") is None
    async with session_factory() as session:
        assert (await session.execute(select(NotificationIntentRow))).first() is None


async def test_notify_on_event_never_raises(engine):
    assert await engine.notify_on_event("u3", "NOT_A_TYPE", sender_id="u1") is None


async def test_notify_on_event_joins_caller_transaction(engine, session_factory):
    async with session_factory() as session:
        intent_id = await engine.notify_on_event(
            "u3", "NEW_COMMENT", "u1", "review:r1", context={"text": "hi"}, session=session
        )
        await session.rollback()
    assert intent_id is not None
    async with session_factory() as session:
        assert await session.get(NotificationIntentRow, intent_id) is None


async def test_grouped_feed(engine, clock):
    await _compose(engine, "u3", "NEW_COMMENT", "u1", "review:r1")
    clock.advance(hours=25)
    await _compose(engine, "u3", "NEW_COMMENT", "u2", "review:r1")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u4")

    raw = await engine.notifications.get_feed("u3")
    grouped = await engine.grouped_feed("u3")
    assert len(raw) == 3
    assert len(grouped.items) == 2
    assert grouped.unread_count == 2


async def test_feed_is_limited(engine, clock):
    for i in range(5):
        clock.advance(minutes=1)
        await _compose(engine, "u3", "NEW_FOLLOWER", f"s{i}")
    assert len(await engine.notifications.get_feed("u3", limit=3)) == 3


async def test_mark_read_by_recipient(engine, session_factory):
    notification_id = await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    await engine.mark_read(notification_id, "u3")
    async with session_factory() as session:
        assert (await NotificationRepository(session).get(notification_id)).read is True


async def test_mark_read_rejects_other_users(engine):
    notification_id = await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    with pytest.raises(PermissionDeniedError):
        await engine.mark_read(notification_id, "u1")
    with pytest.raises(NotFoundError):
        await engine.mark_read("notif_missing", "u3")
    with pytest.raises(UnauthorizedError):
        await engine.mark_read(notification_id, "")


async def test_mark_all_read(engine):
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u2")
    await _compose(engine, "u4", "NEW_FOLLOWER", "u1")

    assert await engine.mark_all_read("u3") == 2
    assert (await engine.grouped_feed("u3")).unread_count == 0
    assert (await engine.grouped_feed("u4")).unread_count == 1


async def test_delete_by_recipient_or_sender(engine):
    first = await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    second = await _compose(engine, "u3", "NEW_FOLLOWER", "u2")

    await engine.delete_notification(first, "u3")
    await engine.delete_notification(second, "u2")
    assert await engine.notifications.get_feed("u3") == []


async def test_delete_rejects_strangers(engine):
    notification_id = await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    with pytest.raises(PermissionDeniedError):
        await engine.delete_notification(notification_id, "u4")
    with pytest.raises(NotFoundError):
        await engine.delete_notification("notif_missing", "u3")


async def test_delete_of_type(engine):
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u2")
    await _compose(engine, "u3", "NEW_COMMENT", "u1", "review:r1")

    assert await engine.notifications.delete_of_type("u3", "NEW_FOLLOWER", sender_id="u1") == 1
    assert await engine.notifications.delete_of_type("u3", "NEW_FOLLOWER") == 1
    feed = await engine.notifications.get_feed("u3")
    assert [n.event_type for n in feed] == ["NEW_COMMENT"]


async def test_entity_deletion_cascades(engine):
    await engine.reactions.register_target("review:r1", owner_id="u3", title="Severance")
    await engine.reactions.register_target("comment:c1:review:r1", owner_id="u4")
    await _compose(engine, "u3", "NEW_REACTION", "u1", "review:r1")
    await _compose(engine, "u3", "NEW_COMMENT", "u2", "review:r1")
    await _compose(engine, "u4", "NEW_REACTION", "u1", "comment:c1:review:r1")
    await _compose(engine, "u3", "NEW_REACTION", "u1", "review:r12")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")

    removed = await engine.on_entity_deleted("review:r1")

    assert removed == {"targets": 2, "notifications": 3}
    assert await engine.notifications.get_feed("u4") == []
    remaining = {n.related_entity_key for n in await engine.notifications.get_feed("u3")}
    assert remaining == {"review:r12", None}


async def test_remove_all_for_user(engine):
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u2")
    assert await engine.notifications.remove_all_for_user("u3") == 2
    assert await engine.notifications.get_feed("u3") == []


async def test_sanitize_deleted_senders(engine):
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1", message="Ana started following you.")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u2", message="Bruno started following you.")

    feed = await engine.notifications.get_feed("u3")
    sanitized = await engine.notifications.sanitize_deleted_senders(feed, existing_sender_ids={"u2"})

    by_sender = {n.sender_id: n for n in sanitized}
    assert by_sender["u1"].message == "Deleted user started following you."
    assert by_sender["u1"].sender_deleted is True
    assert by_sender["u2"].message == "Bruno started following you."

    stored = {n.sender_id: n for n in await engine.notifications.get_feed("u3")}
    assert stored["u1"].sender_deleted is True


async def test_preferences_default_on(engine):
    prefs = await engine.notifications.get_preferences("u3")
    assert all(prefs.values())
    assert "LIST_REACTION" in prefs

    prefs = await engine.notifications.set_preference("u3", "NEW_FOLLOWER", False)
    assert prefs["NEW_FOLLOWER"] is False
    assert prefs["NEW_COMMENT"] is True
    assert await _compose(engine, "u3", "NEW_FOLLOWER", "u1") is None


async def test_subscription_pushes_changes(engine):
    feed = engine.get_notification_feed("u3")

    assert await feed.__anext__() == []
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    batch = await asyncio.wait_for(feed.__anext__(), timeout=1)
    assert [n.sender_id for n in batch] == ["u1"]

    await feed.aclose()
    assert engine.broker.subscriber_count("u3") == 0


async def test_closing_one_subscription_keeps_others(engine):
    first = engine.get_notification_feed("u3")
    second = engine.get_notification_feed("u3")
    await first.__anext__()
    await second.__anext__()
    assert engine.broker.subscriber_count("u3") == 2

    await first.aclose()
    assert engine.broker.subscriber_count("u3") == 1
    await engine.cleanup("u3")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    batch = await asyncio.wait_for(second.__anext__(), timeout=1)
    assert len(batch) == 1
    await second.aclose()


async def test_cleanup_through_engine(engine, session_factory, clock):
    async with session_factory() as session:
        repo = NotificationRepository(session)
        for i in range(3):
            await repo.create(
                notification_id=f"notif_dup{i}",
                recipient_id="u3",
                event_type="NEW_FOLLOWER",
                sender_id="u4",
                message="Davi started following you.",
                read=False,
                created_at=clock() - timedelta(days=i + 2),
            )
        await session.commit()
    assert await engine.cleanup("u3") == 2


async def test_entity_cascade_matches_parent_not_id(engine):
    await _compose(engine, "u3", "NEW_COMMENT", "u1", "comment:review:r1")
    await _compose(engine, "u3", "NEW_COMMENT", "u2", "comment:c9:review:r1")
    await _compose(engine, "u3", "NEW_COMMENT", "u4", "comment:c2:review:r1:2")

    assert await engine.notifications.delete_for_entity("review:r1") == 2
    [kept] = await engine.notifications.get_feed("u3")
    assert kept.related_entity_key == "comment:review:r1"


async def test_feed_anonymises_senders_missing_from_directory(engine, resolver):
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1", message="Ana started following you.")
    await _compose(engine, "u3", "NEW_FOLLOWER", "u2", message="Bruno started following you.")
    resolver.forget("u1")

    grouped = await engine.grouped_feed("u3")

    by_sender = {item.sender_id: item for item in grouped.items}
    assert by_sender["u1"].message == "Deleted user started following you."
    assert by_sender["u2"].message == "Bruno started following you."
    stored = {n.sender_id: n for n in await engine.notifications.get_feed("u3")}
    assert stored["u1"].sender_deleted is True


async def test_feed_keeps_senders_when_directory_fails(session_factory, test_settings, clock):
    class DownResolver:
        async def resolve_display_name(self, user_id):
            raise ConnectionError("directory unavailable")

    engine = build_engine(session_factory, test_settings, resolver=DownResolver(), clock=clock)
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1", message="Ana started following you.")
    [item] = await engine.notifications.get_feed("u3")
    assert item.message == "Ana started following you."
    assert item.sender_deleted is False


async def test_user_deletion_purges_feed_and_queued_intents(engine, session_factory):
    await _compose(engine, "u3", "NEW_FOLLOWER", "u1")
    await engine.notify_on_event("u3", "NEW_FOLLOWER", sender_id="u2")
    await engine.notify_on_event("u4", "NEW_FOLLOWER", sender_id="u2")

    assert await engine.on_user_deleted("u3") == 1

    async with session_factory() as session:
        intents = (await session.execute(select(NotificationIntentRow))).scalars().all()
    assert [i.recipient_id for i in intents] == ["u4"]
    assert await engine.outbox.drain() == 1
    assert await engine.notifications.get_feed("u3") == []

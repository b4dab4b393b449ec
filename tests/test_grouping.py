"""Grouping of raw notifications into feed cards."""

import random
from datetime import datetime, timedelta, timezone

from episodic.models.notification import Notification
from episodic.services.grouping import count_unread_groups, group_key, group_notifications

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _n(notification_id, event_type, minutes, sender="u1", entity=None, read=False, deleted=False):
    return Notification(
        notification_id=notification_id,
        recipient_id="owner",
        event_type=event_type,
        sender_id=sender,
        related_entity_key=entity,
        message=f"message {notification_id}",
        read=read,
        sender_deleted=deleted,
        created_at=T0 + timedelta(minutes=minutes),
    )


def _feed():
    return [
        _n("n1", "NEW_COMMENT", 1, sender="u1", entity="review:r1"),
        _n("n2", "NEW_COMMENT", 5, sender="u2", entity="review:r1"),
        _n("n3", "NEW_FOLLOWER", 2, sender="u3"),
        _n("n4", "NEW_FOLLOWER", 3, sender="u3", read=True),
        _n("n5", "NEW_FOLLOWER", 4, sender="u4"),
        _n("n6", "LIST_REACTION", 0, sender="u1", entity="list:l1"),
    ]


def test_entity_events_group_on_entity():
    assert group_key("NEW_COMMENT", "u1", "review:r1") == group_key("NEW_COMMENT", "u2", "review:r1")
    assert group_key("NEW_COMMENT", "u1", "review:r1") != group_key("NEW_REACTION", "u1", "review:r1")


def test_identity_events_group_on_sender():
    assert group_key("NEW_FOLLOWER", "u3", None) != group_key("NEW_FOLLOWER", "u4", None)


def test_deleted_sender_groups_alone():
    a = group_key("NEW_FOLLOWER", "u3", None, "n1", sender_deleted=True)
    b = group_key("NEW_FOLLOWER", "u3", None, "n2", sender_deleted=True)
    assert a != b


def test_keeps_newest_member_per_group():
    cards = group_notifications(_feed())
    assert [c.notification_id for c in cards] == ["n2", "n5", "n4", "n6"]


def test_grouping_is_order_independent():
    expected = [c.notification_id for c in group_notifications(_feed())]
    rng = random.Random(7)
    for _ in range(20):
        shuffled = _feed()
        rng.shuffle(shuffled)
        assert [c.notification_id for c in group_notifications(shuffled)] == expected


def test_equal_timestamps_break_ties_on_id():
    feed = [
        _n("n_a", "NEW_FOLLOWER", 1, sender="u3"),
        _n("n_b", "NEW_FOLLOWER", 1, sender="u3"),
    ]
    assert group_notifications(feed)[0].notification_id == "n_b"
    assert group_notifications(list(reversed(feed)))[0].notification_id == "n_b"


def test_unread_count_counts_cards():
    # n4 (read) supersedes n3 in its group; n2 supersedes n1
    assert count_unread_groups(_feed()) == 3


def test_empty_feed():
    assert group_notifications([]) == []
    assert count_unread_groups([]) == 0

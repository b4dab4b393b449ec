"""Collapse a raw notification stream into one card per logical group.

Every function here is pure: the result depends only on the input rows, so the
same feed window grouped twice (or in a different order) gives the same cards.
The same key and ordering are used by the composer's merge lookup and by the
cleaner, so "the card a user sees" and "the row the cleaner keeps" agree.
"""

from collections.abc import Iterable
from typing import Protocol


class _Groupable(Protocol):
    notification_id: str
    event_type: str
    sender_id: str | None
    related_entity_key: str | None
    created_at: object
    read: bool
    sender_deleted: bool


GroupKey = tuple[str, str, str]


def group_key(
    event_type: str,
    sender_id: str | None,
    related_entity_key: str | None,
    notification_id: str | None = None,
    sender_deleted: bool = False,
) -> GroupKey:
    """Derive the group identity of a notification.

    Entity events (comment on review X) group on ``(type, entity)``; identity
    events (new follower) group on ``(type, sender)``. Rows whose sender was
    deleted stay on their own.
    """
    event_type = str(event_type)
    if sender_deleted and notification_id:
        return (event_type, "deleted", notification_id)
    if related_entity_key:
        return (event_type, "entity", related_entity_key)
    return (event_type, "sender", sender_id or "unknown")


def key_of(notification: _Groupable) -> GroupKey:
    return group_key(
        notification.event_type,
        notification.sender_id,
        notification.related_entity_key,
        notification.notification_id,
        notification.sender_deleted,
    )


def recency(notification: _Groupable) -> tuple:
    """Total order: newest first by ``created_at``, ties broken by larger id."""
    return (notification.created_at, notification.notification_id)


def partition(notifications: Iterable[_Groupable]) -> dict[GroupKey, list]:
    groups: dict[GroupKey, list] = {}
    for notification in notifications:
        groups.setdefault(key_of(notification), []).append(notification)
    return groups


def group_notifications(notifications: Iterable[_Groupable]) -> list:
    """Keep the newest member of each group, newest group first."""
    winners: dict[GroupKey, _Groupable] = {}
    for notification in notifications:
        key = key_of(notification)
        current = winners.get(key)
        if current is None or recency(notification) > recency(current):
            winners[key] = notification
    return sorted(winners.values(), key=recency, reverse=True)


def count_unread_groups(notifications: Iterable[_Groupable]) -> int:
    """Badge count: unread cards, not unread rows."""
    return sum(1 for n in group_notifications(notifications) if not n.read)

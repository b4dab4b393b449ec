"""Human-readable notification text."""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from episodic.models.enums import NotificationType

logger = logging.getLogger(__name__)

DELETED_USER = "Deleted user"
ANONYMOUS = "Someone"
_SNIPPET_LENGTH = 80


class DisplayNameResolver(Protocol):
    """Resolves a user id to the name shown in notification text."""

    async def resolve_display_name(self, user_id: str) -> str | None: ...


class MappingDisplayNameResolver:
    """Resolver backed by a plain mapping (local mode and tests)."""

    def __init__(self, names: Mapping[str, str] | None = None):
        self._names = dict(names or {})

    def set(self, user_id: str, name: str) -> None:
        self._names[user_id] = name

    def forget(self, user_id: str) -> None:
        self._names.pop(user_id, None)

    async def resolve_display_name(self, user_id: str) -> str | None:
        return self._names.get(user_id)


def snippet(text: str | None, length: int = _SNIPPET_LENGTH) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= length else text[: length - 1].rstrip() + "…"


_TEMPLATES: dict[NotificationType, str] = {
    NotificationType.NEW_FOLLOWER: "{name} started following you.",
    NotificationType.NEW_REACTION: "{name} liked your {thing}{title_suffix}.",
    NotificationType.LIST_REACTION: '{name} liked your list "{title}".',
    NotificationType.NEW_COMMENT: "{name} commented on your review{title_suffix}: \"{text}\"",
    NotificationType.LIST_COMMENT: '{name} commented on your list "{title}": "{text}"',
    NotificationType.NEW_REVIEW: "{name} reviewed {title}.",
    NotificationType.NEW_EPISODE: "A new episode of {title} is out.",
}


class MessageBuilder:
    """Render notification messages from an event type and its context."""

    def __init__(self, resolver: DisplayNameResolver):
        self._resolver = resolver

    async def sender_name(self, sender_id: str | None) -> str:
        if not sender_id:
            return ANONYMOUS
        try:
            name = await self._resolver.resolve_display_name(sender_id)
        except Exception:
            logger.warning("Display name lookup failed for %s", sender_id, exc_info=True)
            return ANONYMOUS
        return name or DELETED_USER

    async def build(
        self,
        event_type: NotificationType | str,
        sender_id: str | None,
        context: Mapping[str, Any] | None = None,
    ) -> str:
        context = context or {}
        event_type = NotificationType(event_type)
        title = context.get("title") or ""
        values = {
            "name": await self.sender_name(sender_id),
            "title": title or "untitled",
            "title_suffix": f" of {title}" if title else "",
            "thing": context.get("thing") or "review",
            "text": snippet(context.get("text")),
        }
        return _TEMPLATES[event_type].format(**values)

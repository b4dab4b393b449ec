"""String enums for reactions, targets and notifications."""

from enum import StrEnum


class TargetType(StrEnum):
    REVIEW = "review"
    LIST = "list"
    COMMENT = "comment"


class ReactionType(StrEnum):
    LIKE = "like"


class NotificationType(StrEnum):
    NEW_FOLLOWER = "NEW_FOLLOWER"
    NEW_COMMENT = "NEW_COMMENT"
    NEW_REACTION = "NEW_REACTION"
    NEW_EPISODE = "NEW_EPISODE"
    NEW_REVIEW = "NEW_REVIEW"
    LIST_COMMENT = "LIST_COMMENT"
    LIST_REACTION = "LIST_REACTION"


class IntentStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


# Notification raised when a target of this type receives a reaction
REACTION_NOTIFICATION_TYPES = {
    TargetType.REVIEW: NotificationType.NEW_REACTION,
    TargetType.COMMENT: NotificationType.NEW_REACTION,
    TargetType.LIST: NotificationType.LIST_REACTION,
}

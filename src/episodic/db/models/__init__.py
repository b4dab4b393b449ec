"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from episodic.db.models.target import TargetRow
from episodic.db.models.reaction import ReactionRow
from episodic.db.models.notification import NotificationRow
from episodic.db.models.intent import NotificationIntentRow
from episodic.db.models.preference import NotificationPreferenceRow

__all__ = [
    "TargetRow",
    "ReactionRow",
    "NotificationRow",
    "NotificationIntentRow",
    "NotificationPreferenceRow",
]

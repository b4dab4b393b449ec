"""Per-user notification opt-outs."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from episodic.db.base import Base, TimestampMixin


class NotificationPreferenceRow(Base, TimestampMixin):
    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

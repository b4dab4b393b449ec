"""Reaction membership table."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from episodic.db.base import Base, TimestampMixin


class ReactionRow(Base, TimestampMixin):
    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("target_key", "user_id", "reaction_type", name="uq_reaction_member"),
    )

    reaction_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    target_key: Mapped[str] = mapped_column(
        String(400), ForeignKey("reaction_targets.target_key"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    reaction_type: Mapped[str] = mapped_column(String(20), nullable=False, default="like")

"""Reaction target table: the owning entity that carries the like counter."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from episodic.db.base import Base, TimestampMixin


class TargetRow(Base, TimestampMixin):
    __tablename__ = "reaction_targets"

    target_key: Mapped[str] = mapped_column(String(400), primary_key=True)
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_id: Mapped[str] = mapped_column(String(128), nullable=False)
    parent_key: Mapped[str | None] = mapped_column(String(256), nullable=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Concurrent writers of the same row fail with StaleDataError
    __mapper_args__ = {"version_id_col": version}

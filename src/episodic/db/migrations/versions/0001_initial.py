"""Initial schema: targets, reactions, notifications, intents, preferences.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

from episodic.db.base import UTCDateTime

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "reaction_targets",
        sa.Column("target_key", sa.String(400), primary_key=True),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", sa.String(128), nullable=False),
        sa.Column("parent_key", sa.String(256), nullable=True),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("title", sa.String(300), nullable=True),
        sa.Column("like_count", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reaction_targets_parent_key", "reaction_targets", ["parent_key"])
    op.create_index("ix_reaction_targets_owner_id", "reaction_targets", ["owner_id"])

    op.create_table(
        "reactions",
        sa.Column("reaction_id", sa.String(128), primary_key=True),
        sa.Column(
            "target_key", sa.String(400),
            sa.ForeignKey("reaction_targets.target_key"), nullable=False,
        ),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("reaction_type", sa.String(20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("target_key", "user_id", "reaction_type", name="uq_reaction_member"),
    )
    op.create_index("ix_reactions_target_key", "reactions", ["target_key"])
    op.create_index("ix_reactions_user_id", "reactions", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.String(128), primary_key=True),
        sa.Column("recipient_id", sa.String(128), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("sender_id", sa.String(128), nullable=True),
        sa.Column("related_entity_key", sa.String(400), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("sender_deleted", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_sender_id", "notifications", ["sender_id"])
    op.create_index("ix_notifications_related_entity_key", "notifications", ["related_entity_key"])
    op.create_index(
        "ix_notifications_group_lookup", "notifications",
        ["recipient_id", "event_type", "created_at"],
    )

    op.create_table(
        "notification_intents",
        sa.Column("intent_id", sa.String(128), primary_key=True),
        sa.Column("recipient_id", sa.String(128), nullable=False),
        sa.Column("sender_id", sa.String(128), nullable=True),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("related_entity_key", sa.String(400), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notification_intents_status", "notification_intents", ["status"])

    op.create_table(
        "notification_preferences",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("event_type", sa.String(50), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("notification_preferences")
    op.drop_table("notification_intents")
    op.drop_table("notifications")
    op.drop_table("reactions")
    op.drop_table("reaction_targets")

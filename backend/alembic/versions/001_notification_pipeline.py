"""Notification pipeline tables: events + routing index, profiles, mutes, jobs, locks, push tokens."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_json = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("country", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "event_routes",
        sa.Column("event_id", sa.String(128), primary_key=True),
        sa.Column("partition", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "event_profiles",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("event_id", sa.String(128), nullable=False),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_event_profiles_event_id", "event_profiles", ["event_id"])
    op.create_index("ix_event_profiles_session_id", "event_profiles", ["session_id"])

    op.create_table(
        "muted_matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(128), nullable=False),
        sa.Column("muter_session_id", sa.String(64), nullable=False),
        sa.Column("muted_session_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("event_id", "muter_session_id", "muted_session_id", name="uq_muted_matches_triple"),
    )
    op.create_index("ix_muted_matches_event_id", "muted_matches", ["event_id"])

    op.create_table(
        "notification_jobs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("event_id", sa.String(128), nullable=False),
        sa.Column("subject_session_id", sa.String(64), nullable=False),
        sa.Column("actor_session_id", sa.String(64), nullable=True),
        sa.Column("aggregation_key", sa.String(256), nullable=False),
        sa.Column("payload", _json, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(32), nullable=False, server_default="queued"),
        sa.Column("skip_push", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("skipped_reason", sa.String(64), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("metadata", _json, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notification_jobs_event_id", "notification_jobs", ["event_id"])
    op.create_index("ix_notification_jobs_subject_session_id", "notification_jobs", ["subject_session_id"])
    op.create_index("ix_notification_jobs_status_created_at", "notification_jobs", ["status", "created_at"])
    op.create_index(
        "ix_notification_jobs_dedup",
        "notification_jobs",
        ["aggregation_key", "subject_session_id", "event_id", "type", "created_at"],
    )

    op.create_table(
        "system_locks",
        sa.Column("key", sa.String(256), primary_key=True),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("processed_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_system_locks_created_at", "system_locks", ["created_at"])

    op.create_table(
        "notifications_log",
        sa.Column("key", sa.String(256), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_log_created_at", "notifications_log", ["created_at"])

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("platform", sa.String(16), nullable=False, server_default="ios"),
        sa.Column("token", sa.String(256), nullable=False),
        sa.Column("installation_id", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(64), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_push_tokens_session_id", "push_tokens", ["session_id"])
    op.create_index("ix_push_tokens_token", "push_tokens", ["token"])
    op.create_index("ix_push_tokens_session_platform", "push_tokens", ["session_id", "platform"])


def downgrade() -> None:
    op.drop_table("push_tokens")
    op.drop_table("notifications_log")
    op.drop_table("system_locks")
    op.drop_table("notification_jobs")
    op.drop_table("muted_matches")
    op.drop_table("event_profiles")
    op.drop_table("event_routes")
    op.drop_table("events")

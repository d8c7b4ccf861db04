"""Queued push notification. Lives and is drained in the partition it was created in.

status: queued -> sent | skipped | permanent-failure (terminal), or queued -> queued with attempts + 1.
aggregation_key: local dedup key (2-minute window on enqueue) and default provider collapse key.
payload: {title, body, data}; metadata: producer hints (e.g. {"reason": "user_active"} with skip_push).
"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import expression, func

from hooked.core.constants import STATUS_QUEUED
from hooked.core.timeutil import utcnow
from hooked.db.base import Base, JSONType


class NotificationJob(Base):
    __tablename__ = "notification_jobs"
    __table_args__ = (
        Index("ix_notification_jobs_status_created_at", "status", "created_at"),
        Index(
            "ix_notification_jobs_dedup",
            "aggregation_key",
            "subject_session_id",
            "event_id",
            "type",
            "created_at",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(16), nullable=False)  # match | message | generic
    event_id = Column(String(128), nullable=False, index=True)
    subject_session_id = Column(String(64), nullable=False, index=True)  # recipient
    actor_session_id = Column(String(64), nullable=True)
    aggregation_key = Column(String(256), nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    attempts = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(String(32), nullable=False, default=STATUS_QUEUED, server_default=STATUS_QUEUED)
    skip_push = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    skipped_reason = Column(String(64), nullable=True)
    error = Column(Text, nullable=True)
    # Column name 'metadata' in DB; attribute renamed since Base reserves .metadata
    job_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

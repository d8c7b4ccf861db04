"""Write-once claim records. One row per logical domain event, per partition.

IdempotencyLock: created by the first successful claim transaction, never updated.
SeenMarker: one-shot secondary marker (e.g. message:{event}:{message_id}).
"""
from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import expression, func

from hooked.core.timeutil import utcnow
from hooked.db.base import Base


class IdempotencyLock(Base):
    __tablename__ = "system_locks"

    key = Column(String(256), primary_key=True)
    processed = Column(Boolean, nullable=False, default=True, server_default=expression.true())
    processed_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)


class SeenMarker(Base):
    __tablename__ = "notifications_log"

    key = Column(String(256), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

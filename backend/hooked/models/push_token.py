"""Expo push token per (session, platform). At most one active row per pair; older ones are revoked."""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.sql import expression, func

from hooked.core.timeutil import utcnow
from hooked.db.base import Base


class PushToken(Base):
    __tablename__ = "push_tokens"
    __table_args__ = (
        Index("ix_push_tokens_session_platform", "session_id", "platform"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False, index=True)
    platform = Column(String(16), nullable=False, server_default="ios")  # ios | android
    token = Column(String(256), nullable=False, index=True)
    installation_id = Column(String(128), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=expression.true())
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(64), nullable=True)  # superseded | DeviceNotRegistered
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

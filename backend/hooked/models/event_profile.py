"""Per-event participant profiles and mute relationships (written by profile/chat CRUD; read here)."""
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from hooked.core.timeutil import utcnow
from hooked.db.base import Base


class EventProfile(Base):
    __tablename__ = "event_profiles"

    id = Column(String(128), primary_key=True)
    event_id = Column(String(128), nullable=False, index=True)
    session_id = Column(String(64), nullable=False, index=True)
    first_name = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class MutedMatch(Base):
    __tablename__ = "muted_matches"
    __table_args__ = (
        UniqueConstraint("event_id", "muter_session_id", "muted_session_id", name="uq_muted_matches_triple"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(128), nullable=False, index=True)
    muter_session_id = Column(String(64), nullable=False)
    muted_session_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

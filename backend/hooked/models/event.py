"""Event rows and the event -> partition routing index.

Event: stored only in its owning partition (written by event CRUD; probed by the router's fallback scan).
EventRoute: routing index, stored in the default partition, written when an event is created.
"""
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from hooked.core.timeutil import utcnow
from hooked.db.base import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(String(128), primary_key=True)
    name = Column(String(256), nullable=True)
    country = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class EventRoute(Base):
    __tablename__ = "event_routes"

    event_id = Column(String(128), primary_key=True)
    partition = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

"""
Idempotency lock: write-once claim rows giving at-most-once execution per logical domain event.

The same like/message write reaches the handlers many times (at-least-once delivery, several
trigger kinds). Whoever inserts the lock row first wins; everyone else gets NOT_ACQUIRED.
The primary key on system_locks.key is the compare-and-swap: a concurrent insert of the same
key fails with IntegrityError and is reported as NOT_ACQUIRED.

Locks are never updated or expired by claim(). prune_expired_locks() deletes rows older than
the configured retention, far beyond any redundant-delivery horizon.
"""
import enum
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hooked.core.timeutil import utcnow
from hooked.models.idempotency_lock import IdempotencyLock, SeenMarker

logger = logging.getLogger(__name__)

MATCH_ACTION_TAG = "match_v2"


class ClaimResult(enum.Enum):
    ACQUIRED = "acquired"
    NOT_ACQUIRED = "not_acquired"


def match_lock_key(event_id: str, session_a: str, session_b: str) -> str:
    """Same key whichever participant's like write triggered the callback."""
    first, second = sorted((session_a, session_b))
    return f"{MATCH_ACTION_TAG}:{event_id}:{first}_{second}"


def message_lock_key(message_id: str) -> str:
    return f"message:{message_id}"


def claim(db: Session, key: str, processed_by: str | None = None) -> ClaimResult:
    """Read the lock for key; if unclaimed, write it and commit in the same transaction."""
    try:
        existing = db.get(IdempotencyLock, key)
        if existing is not None and existing.processed:
            db.rollback()
            logger.debug("Lock %s already processed by %s", key, existing.processed_by)
            return ClaimResult.NOT_ACQUIRED
        db.add(IdempotencyLock(key=key, processed=True, processed_by=processed_by, created_at=utcnow()))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("Lock %s claimed concurrently by another invocation", key)
        return ClaimResult.NOT_ACQUIRED
    logger.debug("Lock %s acquired by %s", key, processed_by)
    return ClaimResult.ACQUIRED


def mark_seen_once(db: Session, key: str) -> bool:
    """One-shot marker. True only for the first caller for key."""
    try:
        if db.get(SeenMarker, key) is not None:
            db.rollback()
            return False
        db.add(SeenMarker(key=key, created_at=utcnow()))
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def prune_expired_locks(db: Session, retention_days: int, now: datetime | None = None) -> int:
    """Delete locks and seen markers older than retention_days. 0 keeps everything. Returns rows deleted."""
    if retention_days <= 0:
        return 0
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    deleted = (
        db.query(IdempotencyLock)
        .filter(IdempotencyLock.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    deleted += (
        db.query(SeenMarker)
        .filter(SeenMarker.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted

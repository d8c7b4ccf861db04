"""
Durable notification job queue, one table per partition.

Producers (domain handlers, direct callers) enqueue; the drain is the only code that changes a job
after insert. Each job is re-selected FOR UPDATE SKIP LOCKED with status=queued before its
bookkeeping, so two drains never both act on the same job. Jobs are processed one at a time
and committed one at a time.

Lifecycle: queued -> sent | skipped | permanent-failure, or queued -> queued (attempts + 1) on a
transient send failure until MAX_JOB_ATTEMPTS.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hooked.core.constants import (
    ENQUEUE_DEDUP_WINDOW_SECONDS,
    JOB_STALENESS_HOURS,
    JOB_TYPES,
    MAX_JOB_ATTEMPTS,
    MAX_JOBS_PER_DRAIN,
    STATUS_PERMANENT_FAILURE,
    STATUS_QUEUED,
    STATUS_SENT,
    STATUS_SKIPPED,
    TERMINAL_STATUSES,
)
from hooked.core.errors import InvalidRequest
from hooked.core.regions import PARTITIONS
from hooked.core.timeutil import as_utc, utcnow
from hooked.db.session import session_for
from hooked.models.notification_job import NotificationJob
from hooked.services.push import PushDispatcher
from hooked.services.push_tokens import fetch_session_tokens

logger = logging.getLogger(__name__)

ERROR_EXPIRED = "Job expired after 24 hours"
ERROR_NO_TOKENS = "No push tokens found for recipient"
DEFAULT_SKIP_REASON = "user_active"

# Outcomes of processing one job
OUTCOME_RETRY = "retry"

EnqueueListener = Callable[[str, NotificationJob], None]

_enqueue_listeners: list[EnqueueListener] = []
_enqueue_lock = threading.Lock()
_drain_locks: dict[str, threading.Lock] = {p: threading.Lock() for p in PARTITIONS}
_drain_reruns: dict[str, threading.Event] = {p: threading.Event() for p in PARTITIONS}


def add_enqueue_listener(listener: EnqueueListener) -> None:
    """Called as listener(partition, job) after every committed insert."""
    if listener not in _enqueue_listeners:
        _enqueue_listeners.append(listener)


def remove_enqueue_listener(listener: EnqueueListener) -> None:
    if listener in _enqueue_listeners:
        _enqueue_listeners.remove(listener)


def _notify_enqueued(partition: str, job: NotificationJob) -> None:
    for listener in list(_enqueue_listeners):
        try:
            listener(partition, job)
        except Exception as e:
            # The job is committed; the periodic sweep will pick it up
            logger.warning("Enqueue listener failed for job %s in %s: %s", job.id, partition, e)


def _lock_dedup_key(db: Session, job: NotificationJob) -> None:
    """Postgres: hold a transaction-scoped advisory lock on the dedup key until commit/rollback."""
    if db.get_bind().dialect.name != "postgresql":
        return
    key = f"{job.type}|{job.event_id}|{job.subject_session_id}|{job.aggregation_key}"
    db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})


def enqueue(
    db: Session,
    job: NotificationJob,
    now: datetime | None = None,
    *,
    partition: str | None = None,
) -> NotificationJob | None:
    """
    Insert job as queued unless an identical job (aggregation key, subject, event, type) was
    created within the dedup window. Returns the stored job, or None when dropped as a duplicate.
    partition names the database db is bound to; it is passed to enqueue listeners.

    The duplicate check and the insert run under a process-wide lock, and on Postgres also under an
    advisory lock on the dedup key, so concurrent producers cannot both insert the same job.
    """
    if job.type not in JOB_TYPES:
        raise InvalidRequest(f"Unknown notification type: {job.type}")
    if not job.subject_session_id or not job.event_id or not job.aggregation_key:
        raise InvalidRequest("subject_session_id, event_id and aggregation_key are required")

    now = now or utcnow()
    cutoff = now - timedelta(seconds=ENQUEUE_DEDUP_WINDOW_SECONDS)
    with _enqueue_lock:
        _lock_dedup_key(db, job)
        duplicate = (
            db.query(NotificationJob.id)
            .filter(
                NotificationJob.aggregation_key == job.aggregation_key,
                NotificationJob.subject_session_id == job.subject_session_id,
                NotificationJob.event_id == job.event_id,
                NotificationJob.type == job.type,
                NotificationJob.created_at >= cutoff,
            )
            .first()
        )
        if duplicate is not None:
            db.rollback()
            logger.info(
                "Duplicate %s job for %s... (key=%s) within %ss; dropped",
                job.type, job.subject_session_id[:8], job.aggregation_key, ENQUEUE_DEDUP_WINDOW_SECONDS,
            )
            return None

        job.status = STATUS_QUEUED
        job.attempts = 0
        job.payload = job.payload or {}
        job.job_metadata = job.job_metadata or {}
        job.skip_push = bool(job.skip_push)
        job.created_at = now
        job.updated_at = now
        db.add(job)
        db.commit()
    db.refresh(job)
    logger.info("Enqueued %s job %s for %s... (key=%s)", job.type, job.id, job.subject_session_id[:8], job.aggregation_key)
    if partition:
        _notify_enqueued(partition, job)
    return job


@dataclass
class DrainResult:
    partition: str
    sent: int = 0
    skipped: int = 0
    retried: int = 0
    permanent_failures: int = 0
    busy: bool = False
    job_ids: list[int] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.sent + self.skipped + self.retried + self.permanent_failures

    def record(self, job_id: int, outcome: str) -> None:
        self.job_ids.append(job_id)
        if outcome == STATUS_SENT:
            self.sent += 1
        elif outcome == STATUS_SKIPPED:
            self.skipped += 1
        elif outcome == STATUS_PERMANENT_FAILURE:
            self.permanent_failures += 1
        else:
            self.retried += 1


def _finish(db: Session, job: NotificationJob, status: str, now: datetime, *, error: str | None = None) -> str:
    job.status = status
    job.updated_at = now
    if error is not None:
        job.error = error
    db.commit()
    return status


def _process_job(db: Session, job_id: int, dispatcher: PushDispatcher, now: datetime) -> str | None:
    """Bookkeeping for one job. None when another drain took it or it is no longer queued."""
    job = (
        db.query(NotificationJob)
        .filter(NotificationJob.id == job_id, NotificationJob.status == STATUS_QUEUED)
        .with_for_update(skip_locked=True)
        .first()
    )
    if job is None:
        db.rollback()
        return None

    created_at = as_utc(job.created_at)
    if created_at and now - created_at > timedelta(hours=JOB_STALENESS_HOURS):
        logger.info("Job %s expired (created %s)", job.id, created_at.isoformat())
        return _finish(db, job, STATUS_PERMANENT_FAILURE, now, error=ERROR_EXPIRED)

    if job.skip_push:
        reason = (job.job_metadata or {}).get("reason") or DEFAULT_SKIP_REASON
        job.skipped_reason = reason
        logger.info("Job %s skipped: %s", job.id, reason)
        return _finish(db, job, STATUS_SKIPPED, now)

    tokens = fetch_session_tokens(db, job.subject_session_id)
    if not tokens:
        logger.info("Job %s: no active push tokens for %s...", job.id, job.subject_session_id[:8])
        return _finish(db, job, STATUS_PERMANENT_FAILURE, now, error=ERROR_NO_TOKENS)

    try:
        result = dispatcher.send(tokens, job.payload or {}, job.aggregation_key)
        error = None if result.ok else (result.describe() or "Push send failed")
    except Exception as e:
        logger.exception("Job %s: push send raised: %s", job.id, e)
        error = str(e) or e.__class__.__name__

    if error is None:
        job.error = None
        logger.info("Job %s sent to %s device(s)", job.id, len(tokens))
        return _finish(db, job, STATUS_SENT, now)

    job.attempts = (job.attempts or 0) + 1
    if job.attempts >= MAX_JOB_ATTEMPTS:
        logger.warning("Job %s failed permanently after %s attempts: %s", job.id, job.attempts, error)
        return _finish(db, job, STATUS_PERMANENT_FAILURE, now, error=error)
    logger.info("Job %s failed (attempt %s/%s), will retry: %s", job.id, job.attempts, MAX_JOB_ATTEMPTS, error)
    _finish(db, job, STATUS_QUEUED, now, error=error)
    return OUTCOME_RETRY


def _acquire_drain(partition: str) -> bool:
    """Take the partition's drain lock, or leave a rerun request for the drain holding it."""
    lock = _drain_locks[partition]
    if lock.acquire(blocking=False):
        return True
    _drain_reruns[partition].set()
    # The holder may have released between the two calls and missed the request
    return lock.acquire(blocking=False)


def _drain_batch(partition: str, dispatcher: PushDispatcher, now: datetime | None, result: DrainResult) -> None:
    """One batch of the oldest queued jobs, leaving out jobs this drain already handled."""
    db = session_for(partition)
    try:
        query = db.query(NotificationJob.id).filter(NotificationJob.status == STATUS_QUEUED)
        if result.job_ids:
            query = query.filter(NotificationJob.id.notin_(result.job_ids))
        rows = query.order_by(NotificationJob.created_at.asc(), NotificationJob.id.asc()).limit(MAX_JOBS_PER_DRAIN).all()
        job_ids = [job_id for (job_id,) in rows]
        db.rollback()
        for job_id in job_ids:
            outcome = _process_job(db, job_id, dispatcher, now or utcnow())
            if outcome is not None:
                result.record(job_id, outcome)
    finally:
        db.close()


def drain(partition: str, *, dispatcher: PushDispatcher, now: datetime | None = None) -> DrainResult:
    """
    Process up to MAX_JOBS_PER_DRAIN of the oldest queued jobs in one partition.

    When this process is already draining the partition, returns immediately with busy=True and
    the running drain takes another batch once it finishes its current one, so a job enqueued
    mid-drain is not left for the next sweep.
    """
    result = DrainResult(partition=partition)
    if not _acquire_drain(partition):
        logger.debug("Drain of %s already running; rerun requested", partition)
        result.busy = True
        return result
    lock, rerun = _drain_locks[partition], _drain_reruns[partition]
    while True:
        try:
            rerun.clear()
            _drain_batch(partition, dispatcher, now, result)
        finally:
            lock.release()
        if not rerun.is_set() or not lock.acquire(blocking=False):
            break
        logger.debug("Drain of %s: rerun requested during batch", partition)
    if result.processed:
        logger.info(
            "Drained %s: sent=%s skipped=%s retried=%s failed=%s",
            partition, result.sent, result.skipped, result.retried, result.permanent_failures,
        )
    return result


def drain_all_partitions(
    dispatcher: PushDispatcher,
    time_budget_seconds: float | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> list[DrainResult]:
    """Sweep every partition in order. A failing partition is logged and skipped."""
    started = clock()
    results: list[DrainResult] = []
    for partition in PARTITIONS:
        if time_budget_seconds is not None and clock() - started >= time_budget_seconds:
            logger.warning("Sweep time budget (%ss) spent; stopping before %s", time_budget_seconds, partition)
            break
        try:
            results.append(drain(partition, dispatcher=dispatcher))
        except SQLAlchemyError as e:
            logger.error("Sweep of partition %s failed: %s", partition, e)
    return results


def queue_stats(db: Session) -> dict[str, int]:
    """Job counts per status (all statuses present, zero-filled)."""
    counts = {status: 0 for status in (STATUS_QUEUED, *TERMINAL_STATUSES)}
    rows = db.query(NotificationJob.status, func.count(NotificationJob.id)).group_by(NotificationJob.status).all()
    for status, count in rows:
        counts[status] = count
    return counts


def has_pending_jobs(db: Session, event_id: str) -> bool:
    """True while the event still has queued jobs (expired-event cleanup waits for these)."""
    return (
        db.query(NotificationJob.id)
        .filter(NotificationJob.event_id == event_id, NotificationJob.status == STATUS_QUEUED)
        .first()
        is not None
    )


def prune_terminal_jobs(db: Session, older_than_days: int, now: datetime | None = None) -> int:
    """Delete terminal jobs last updated more than older_than_days ago. 0 keeps everything."""
    if older_than_days <= 0:
        return 0
    cutoff = (now or utcnow()) - timedelta(days=older_than_days)
    deleted = (
        db.query(NotificationJob)
        .filter(NotificationJob.status.in_(TERMINAL_STATUSES), NotificationJob.updated_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted

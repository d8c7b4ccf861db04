"""
Notification queue jobs run by the background scheduler.

- Sweep: every NOTIFICATION_SWEEP_INTERVAL_SECONDS, drain every partition (safety net for jobs the
  reactive drain missed and for retries), bounded by settings.sweep_time_budget_seconds.
- Reactive drain: after each enqueue, a one-shot job drains the job's partition right away.
- Retention: daily prune of old idempotency locks and terminal jobs in every partition.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from hooked.config import settings
from hooked.core.constants import REACTIVE_DRAIN_MAX_INSTANCES
from hooked.core.regions import PARTITIONS
from hooked.core.timeutil import utcnow
from hooked.db.session import session_for
from hooked.models.notification_job import NotificationJob
from hooked.scheduler import scheduler
from hooked.services import job_queue
from hooked.services.idempotency import prune_expired_locks
from hooked.services.push import PushDispatcher

logger = logging.getLogger(__name__)

_dispatcher: PushDispatcher | None = None


def get_dispatcher() -> PushDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = PushDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: PushDispatcher | None) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def run_notification_sweep_job() -> None:
    try:
        results = job_queue.drain_all_partitions(get_dispatcher(), settings.sweep_time_budget_seconds)
        processed = sum(r.processed for r in results)
        if processed:
            logger.info("Notification sweep: processed %s job(s) across %s partition(s)", processed, len(results))
    except Exception as e:
        logger.exception("Notification sweep failed: %s", e)


def run_partition_drain_job(partition: str) -> None:
    try:
        job_queue.drain(partition, dispatcher=get_dispatcher())
    except Exception as e:
        logger.exception("Reactive drain of %s failed: %s", partition, e)


def request_drain(partition: str) -> None:
    """Schedule an immediate drain of partition. Pending requests for the same partition coalesce."""
    if not scheduler.running:
        logger.debug("Scheduler not running; %s will be drained by the next sweep", partition)
        return
    scheduler.add_job(
        run_partition_drain_job,
        "date",
        run_date=utcnow(),
        args=[partition],
        id=f"notification_drain_{partition}",
        replace_existing=True,
        misfire_grace_time=30,
        max_instances=REACTIVE_DRAIN_MAX_INSTANCES,
    )


def _on_job_enqueued(partition: str, job: NotificationJob) -> None:
    from hooked.handlers import ChangeRecord, registry

    registry.dispatch(
        ChangeRecord(
            partition=partition,
            collection="notification_jobs",
            change_kind="created",
            document_id=str(job.id),
            after={"type": job.type, "status": job.status, "subject_session_id": job.subject_session_id},
        )
    )


def install_reactive_drain() -> None:
    job_queue.add_enqueue_listener(_on_job_enqueued)


def uninstall_reactive_drain() -> None:
    job_queue.remove_enqueue_listener(_on_job_enqueued)


def run_retention_job() -> None:
    for partition in PARTITIONS:
        db = session_for(partition)
        try:
            locks = prune_expired_locks(db, settings.lock_retention_days)
            jobs = job_queue.prune_terminal_jobs(db, settings.job_retention_days)
            if locks or jobs:
                logger.info("Retention %s: pruned %s lock(s), %s job(s)", partition, locks, jobs)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Retention prune failed for %s: %s", partition, e)
        finally:
            db.close()

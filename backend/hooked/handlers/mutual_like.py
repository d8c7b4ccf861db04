"""
Mutual like -> one match notification job per participant.

Both like documents of a pair, and both the "written" and "updated" triggers of each document,
reach this handler. Only the invocation that claims match_lock_key(event, a, b) enqueues.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

from hooked.core.constants import JOB_TYPE_MATCH
from hooked.db.session import session_for
from hooked.handlers.triggers import ChangeRecord
from hooked.models.notification_job import NotificationJob
from hooked.services.idempotency import ClaimResult, claim, match_lock_key
from hooked.services.job_queue import enqueue
from hooked.services.profiles import display_name

logger = logging.getLogger(__name__)


def _match_job(event_id: str, subject: str, partner: str, partner_name: str) -> NotificationJob:
    aggregation_key = f"match:{event_id}:{subject}"
    return NotificationJob(
        type=JOB_TYPE_MATCH,
        event_id=event_id,
        subject_session_id=subject,
        actor_session_id=partner,
        aggregation_key=aggregation_key,
        payload={
            "title": f"You got Hooked with {partner_name}!",
            "body": "Start chatting now!",
            "data": {
                "type": JOB_TYPE_MATCH,
                "partnerSessionId": partner,
                "partnerName": partner_name,
                "aggregationKey": aggregation_key,
            },
        },
    )


def _enqueue_in_partition(partition: str, job: NotificationJob) -> NotificationJob | None:
    db = session_for(partition)
    try:
        return enqueue(db, job, partition=partition)
    finally:
        db.close()


def handle_like_change(record: ChangeRecord) -> int:
    """Returns the number of jobs enqueued (0 or 2; fewer if one was a dedup hit)."""
    after = record.after
    if not after:
        return 0
    was_mutual = (record.before or {}).get("is_mutual") is True
    if was_mutual or after.get("is_mutual") is not True:
        return 0

    event_id = after.get("event_id")
    liker = after.get("liker_session_id")
    liked = after.get("liked_session_id")
    if not event_id or not liker or not liked:
        logger.info("Like %s in %s missing event or session ids; ignoring", record.document_id, record.partition)
        return 0

    db = session_for(record.partition)
    try:
        if claim(db, match_lock_key(event_id, liker, liked), processed_by=record.document_id) is ClaimResult.NOT_ACQUIRED:
            logger.debug("Match %s/%s... already handled", event_id, liker[:8])
            return 0
        # Best effort: display_name falls back to "Someone"
        liker_name = display_name(db, after.get("from_profile_id"))
        liked_name = display_name(db, after.get("to_profile_id"))
    finally:
        db.close()

    jobs = [
        _match_job(event_id, subject=liked, partner=liker, partner_name=liker_name),
        _match_job(event_id, subject=liker, partner=liked, partner_name=liked_name),
    ]
    with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
        futures = [pool.submit(_enqueue_in_partition, record.partition, job) for job in jobs]
        stored = [f.result() for f in futures]
    enqueued = sum(1 for job in stored if job is not None)
    logger.info(
        "Match in %s for event %s: enqueued %s job(s) for %s... and %s...",
        record.partition, event_id, enqueued, liked[:8], liker[:8],
    )
    return enqueued

"""New chat message -> one message notification job for the recipient."""
import logging

from sqlalchemy.exc import SQLAlchemyError

from hooked.core.constants import FALLBACK_DISPLAY_NAME, JOB_TYPE_MESSAGE, MESSAGE_PREVIEW_CHARS
from hooked.db.session import session_for
from hooked.handlers.triggers import ChangeRecord
from hooked.models.notification_job import NotificationJob
from hooked.services.idempotency import ClaimResult, claim, mark_seen_once, message_lock_key
from hooked.services.job_queue import enqueue
from hooked.services.profiles import display_name, is_muted, session_for_profile

logger = logging.getLogger(__name__)


def handle_message_created(record: ChangeRecord) -> NotificationJob | None:
    message_id = record.document_id
    doc = record.after or {}

    db = session_for(record.partition)
    try:
        if claim(db, message_lock_key(message_id), processed_by=message_id) is ClaimResult.NOT_ACQUIRED:
            logger.debug("Message %s already handled", message_id)
            return None

        event_id = doc.get("event_id")
        from_profile = doc.get("from_profile_id")
        to_profile = doc.get("to_profile_id")
        if not event_id or not from_profile or not to_profile:
            logger.info("Message %s missing event or profile ids; ignoring", message_id)
            return None

        sender_name = doc.get("sender_name") or display_name(db, from_profile)
        content = doc.get("content")
        preview = content[:MESSAGE_PREVIEW_CHARS] if isinstance(content, str) else None

        if not mark_seen_once(db, f"message:{event_id}:{message_id}"):
            return None
        if from_profile == to_profile:
            return None

        to_session = doc.get("to_session_id")
        if not isinstance(to_session, str) or not to_session:
            to_session = session_for_profile(db, to_profile)
        if not to_session:
            logger.info("Message %s: no session for recipient profile %s", message_id, to_profile)
            return None

        from_session = doc.get("from_session_id")
        if not isinstance(from_session, str) or not from_session:
            try:
                from_session = session_for_profile(db, from_profile)
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Message %s: sender session lookup failed: %s", message_id, e)
                from_session = None
        if from_session and from_session == to_session:
            return None

        if from_session:
            try:
                if is_muted(db, event_id, to_session, from_session):
                    logger.info("Message %s: recipient %s... muted sender %s...", message_id, to_session[:8], from_session[:8])
                    return None
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Message %s: mute check failed, treating as not muted: %s", message_id, e)

        aggregation_key = f"message:{event_id}:{to_profile}"
        job = NotificationJob(
            type=JOB_TYPE_MESSAGE,
            event_id=event_id,
            subject_session_id=to_session,
            actor_session_id=from_session,
            aggregation_key=aggregation_key,
            payload={
                "title": f"New message from {sender_name or FALLBACK_DISPLAY_NAME}",
                "body": preview if preview is not None else "Open to read",
                "data": {
                    "type": JOB_TYPE_MESSAGE,
                    "conversationId": to_profile,
                    "partnerSessionId": from_session,
                    "partnerName": sender_name,
                    "aggregationKey": aggregation_key,
                },
            },
        )
        return enqueue(db, job, partition=record.partition)
    finally:
        db.close()

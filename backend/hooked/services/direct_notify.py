"""
Synchronous send paths that bypass the job queue.

send_direct: cross-device notification requested by a client (self-send and mute checks,
tokens from the event's partition, circuit breaker against duplicate content).
send_legacy: old shared-secret endpoint with no event context; reads tokens from the default
partition only and has no dedup. Kept for old clients.
"""
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from hooked.core.constants import JOB_TYPE_MESSAGE, JOB_TYPES
from hooked.core.errors import InvalidRequest
from hooked.core.regions import DEFAULT_PARTITION
from hooked.core.timeutil import utcnow
from hooked.db.session import session_for
from hooked.services.circuit_breaker import NotificationCircuitBreaker
from hooked.services.profiles import is_muted
from hooked.services.push import PushDispatcher
from hooked.services.push_tokens import fetch_all_session_tokens, fetch_session_tokens
from hooked.services.regional_router import resolve_by_event_id

logger = logging.getLogger(__name__)


def send_direct(
    *,
    type_: str,
    title: str,
    body: str | None,
    target_session_id: str,
    sender_session_id: str | None,
    data: dict[str, Any] | None,
    breaker: NotificationCircuitBreaker,
    dispatcher: PushDispatcher,
) -> dict[str, Any]:
    if not type_ or not title or not target_session_id:
        raise InvalidRequest("type, title, and targetSessionId are required")
    if type_ not in JOB_TYPES:
        raise InvalidRequest("type must be match, message, or generic")
    data = dict(data or {})

    if sender_session_id and sender_session_id == target_session_id:
        return {"success": False, "error": "Cannot send notification to self"}

    event_id = data.get("event_id")
    if not event_id:
        return {"success": False, "error": "event_id is required in notification data"}
    partition = resolve_by_event_id(event_id)

    db = session_for(partition)
    try:
        if type_ == JOB_TYPE_MESSAGE and sender_session_id:
            try:
                if is_muted(db, event_id, target_session_id, sender_session_id):
                    return {"success": False, "error": "Recipient has muted sender"}
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Mute check failed for %s...; sending anyway: %s", target_session_id[:8], e)
        tokens = fetch_session_tokens(db, target_session_id)
    finally:
        db.close()
    if not tokens:
        return {"success": False, "error": "No push tokens found for target session"}

    is_message = type_ == JOB_TYPE_MESSAGE
    if breaker.should_skip(
        target_session_id,
        type_,
        source_id=sender_session_id if is_message else None,
        content=body if is_message else None,
    ):
        return {
            "success": True,
            "skipped": True,
            "reason": "duplicate_content" if is_message else "recent_match",
        }

    payload = {"title": title, "body": body or "", "data": {"type": type_, **data}}
    result = dispatcher.send(tokens, payload)
    logger.info(
        "Direct %s notification to %s... in %s: %s token(s), ok=%s",
        type_, target_session_id[:8], partition, len(tokens), result.ok,
    )
    return {
        "success": True,
        "messageId": f"cross-device-{int(utcnow().timestamp() * 1000)}",
        "sentToTokens": len(tokens),
    }


def send_legacy(
    *,
    recipient_session_id: str,
    title: str,
    body: str | None,
    data: dict[str, Any] | None,
    dispatcher: PushDispatcher,
) -> dict[str, Any]:
    if not recipient_session_id or not title:
        raise InvalidRequest("recipientSessionId and title required")
    logger.warning("notify: legacy endpoint used without event context; reading tokens from %s", DEFAULT_PARTITION)

    db = session_for(DEFAULT_PARTITION)
    try:
        tokens = fetch_all_session_tokens(db, recipient_session_id)
    finally:
        db.close()
    if not tokens:
        return {"sent": 0, "message": "No tokens for recipient"}

    data = dict(data or {})
    collapse_key = data.get("aggregationKey") or data.get("type") or "default"
    result = dispatcher.send(tokens, {"title": title, "body": body or "", "data": data}, collapse_key)
    return {
        "sent": len(tokens),
        "results": [{"status": r.status, "error": r.error} for r in result.results],
    }

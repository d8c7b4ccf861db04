"""
Notifications API: direct cross-device send, legacy shared-secret send, mute toggle, queue stats.

Handlers enqueue match/message jobs on their own; these endpoints are for client-initiated sends
and operations.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from hooked.api.deps import get_breaker, get_dispatcher, require_api_key
from hooked.core.errors import InvalidRequest, to_http
from hooked.core.regions import PARTITIONS
from hooked.db.session import session_for
from hooked.services.circuit_breaker import NotificationCircuitBreaker
from hooked.services.direct_notify import send_direct, send_legacy
from hooked.services.job_queue import queue_stats
from hooked.services.profiles import set_mute
from hooked.services.push import PushDispatcher
from hooked.services.regional_router import resolve_by_event_id

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Direct send ---


class DirectNotificationRequest(BaseModel):
    type: str = ""
    title: str = ""
    body: str | None = None
    targetSessionId: str = ""
    senderSessionId: str | None = None
    data: dict[str, Any] = Field(default_factory=dict, description="Must include event_id")


@router.post("/notifications/direct")
def direct_notification(
    req: DirectNotificationRequest,
    breaker: NotificationCircuitBreaker = Depends(get_breaker),
    dispatcher: PushDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    try:
        return send_direct(
            type_=req.type,
            title=req.title,
            body=req.body,
            target_session_id=req.targetSessionId,
            sender_session_id=req.senderSessionId,
            data=req.data,
            breaker=breaker,
            dispatcher=dispatcher,
        )
    except InvalidRequest as e:
        raise to_http(e)


# --- Legacy send ---


class LegacyNotifyRequest(BaseModel):
    recipientSessionId: str = ""
    title: str = ""
    body: str | None = None
    data: dict[str, Any] | None = None


@router.post("/notify", dependencies=[Depends(require_api_key)])
def legacy_notify(
    req: LegacyNotifyRequest,
    dispatcher: PushDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Old clients without event context. Tokens come from the default partition only."""
    try:
        return send_legacy(
            recipient_session_id=req.recipientSessionId,
            title=req.title,
            body=req.body,
            data=req.data,
            dispatcher=dispatcher,
        )
    except InvalidRequest as e:
        raise to_http(e)


# --- Mute ---


class MuteRequest(BaseModel):
    event_id: str = Field(..., min_length=1)
    muter_session_id: str = Field(..., min_length=1)
    muted_session_id: str = Field(..., min_length=1)
    muted: bool


@router.post("/mute")
def mute(req: MuteRequest) -> dict[str, Any]:
    partition = resolve_by_event_id(req.event_id)
    db = session_for(partition)
    try:
        set_mute(db, req.event_id, req.muter_session_id, req.muted_session_id, req.muted)
    finally:
        db.close()
    logger.info(
        "Mute %s: %s... -> %s... in event %s",
        "set" if req.muted else "cleared", req.muter_session_id[:8], req.muted_session_id[:8], req.event_id,
    )
    return {"success": True, "muted": req.muted}


# --- Queue stats ---


@router.get("/notifications/jobs/stats")
def job_stats() -> dict[str, Any]:
    """Job counts per status for every partition."""
    out: dict[str, Any] = {}
    for partition in PARTITIONS:
        db = session_for(partition)
        try:
            out[partition] = queue_stats(db)
        except SQLAlchemyError as e:
            logger.warning("Stats for %s failed: %s", partition, e)
            out[partition] = {"error": str(e)}
        finally:
            db.close()
    return {"partitions": out}

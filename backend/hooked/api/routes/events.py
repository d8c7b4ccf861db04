"""Event routing: register new events in their regional partition and look up where an event lives."""
import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from hooked.db.session import session_for
from hooked.services.job_queue import has_pending_jobs
from hooked.services.regional_router import register_event, resolve_by_event_id

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterEventBody(BaseModel):
    eventId: str = Field(..., min_length=1)
    country: str | None = None
    name: str | None = None


@router.post("/events")
def create_event(body: RegisterEventBody):
    partition = register_event(body.eventId, body.country, body.name)
    return {"eventId": body.eventId, "partition": partition}


@router.get("/events/{event_id}/partition")
def event_partition(event_id: str):
    return {"eventId": event_id, "partition": resolve_by_event_id(event_id)}


@router.get("/events/{event_id}/pending-jobs")
def event_pending_jobs(event_id: str):
    """Expired-event cleanup waits while this is true."""
    partition = resolve_by_event_id(event_id)
    db = session_for(partition)
    try:
        return {"eventId": event_id, "partition": partition, "pending": has_pending_jobs(db, event_id)}
    finally:
        db.close()

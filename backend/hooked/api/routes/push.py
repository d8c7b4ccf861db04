"""Push notification registration: Expo push tokens per session, stored in the event's partition."""
import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from hooked.core.errors import InvalidRequest, to_http
from hooked.core.regions import DEFAULT_PARTITION
from hooked.db.session import session_for
from hooked.services.push_tokens import register_push_token as save_token
from hooked.services.regional_router import resolve_by_event_id

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    sessionId: str = Field(..., description="Client session id (UUID v4)")
    token: str = Field(..., max_length=512, description="Expo push token")
    platform: str = Field(..., description="ios | android")
    installationId: str | None = None
    eventId: str | None = Field(None, description="Event the session joined; selects the partition")


@router.post("/push/register")
def register_push_token(body: RegisterPushBody):
    """
    Register a device for push notifications.
    Idempotent: the same token is refreshed; older tokens for the same session and platform
    are deactivated.
    """
    partition = resolve_by_event_id(body.eventId) if body.eventId else DEFAULT_PARTITION
    db = session_for(partition)
    try:
        row = save_token(
            db,
            session_id=body.sessionId,
            platform=body.platform,
            token=body.token,
            installation_id=body.installationId,
        )
        return {"success": True, "tokenId": row.id, "partition": partition}
    except InvalidRequest as e:
        raise to_http(e)
    finally:
        db.close()

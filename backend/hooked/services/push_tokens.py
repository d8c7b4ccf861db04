"""
Push token registry per partition.

Tokens are stored in the partition of the event the session joined (default partition without
event context). Lookups for sending never cross partitions.
"""
import logging
import re

from sqlalchemy.orm import Session

from hooked.core.constants import TOKENS_PER_SESSION_LIMIT
from hooked.core.errors import InvalidRequest
from hooked.core.timeutil import utcnow
from hooked.models.push_token import PushToken

logger = logging.getLogger(__name__)

PLATFORMS = ("ios", "android")
REVOKED_SUPERSEDED = "superseded"

_SESSION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)


def fetch_session_tokens(db: Session, session_id: str, *, active_only: bool = True) -> list[str]:
    """Most recently updated tokens for the session (one per platform), deduplicated."""
    q = db.query(PushToken).filter(PushToken.session_id == session_id)
    if active_only:
        q = q.filter(PushToken.is_active.is_(True))
    rows = q.order_by(PushToken.updated_at.desc()).limit(TOKENS_PER_SESSION_LIMIT).all()
    tokens: list[str] = []
    for row in rows:
        if row.token and row.token not in tokens:
            tokens.append(row.token)
    return tokens


def fetch_all_session_tokens(db: Session, session_id: str) -> list[str]:
    """Every token ever stored for the session, active or not (legacy notify path)."""
    rows = db.query(PushToken.token).filter(PushToken.session_id == session_id).all()
    return list(dict.fromkeys(t for (t,) in rows if t))


def register_push_token(
    db: Session,
    *,
    session_id: str,
    platform: str,
    token: str,
    installation_id: str | None = None,
) -> PushToken:
    """
    Upsert the token for (session, platform) and deactivate every other active token for that pair.
    Raises InvalidRequest for a blank token, unknown platform or malformed session id.
    """
    token = (token or "").strip()
    session_id = (session_id or "").strip()
    if not token:
        raise InvalidRequest("token is required and must be a string")
    if platform not in PLATFORMS:
        raise InvalidRequest("platform must be 'ios' or 'android'")
    if not _SESSION_ID_PATTERN.match(session_id):
        raise InvalidRequest("Invalid session ID format")

    now = utcnow()
    others = (
        db.query(PushToken)
        .filter(
            PushToken.session_id == session_id,
            PushToken.platform == platform,
            PushToken.token != token,
            PushToken.is_active.is_(True),
        )
        .all()
    )
    for row in others:
        row.is_active = False
        row.revoked_at = now
        row.revoked_reason = REVOKED_SUPERSEDED
        row.updated_at = now

    row = (
        db.query(PushToken)
        .filter(PushToken.session_id == session_id, PushToken.platform == platform, PushToken.token == token)
        .first()
    )
    if row is None:
        row = PushToken(session_id=session_id, platform=platform, token=token, created_at=now)
        db.add(row)
    row.installation_id = installation_id or row.installation_id
    row.is_active = True
    row.revoked_at = None
    row.revoked_reason = None
    row.last_seen_at = now
    row.updated_at = now
    db.commit()
    db.refresh(row)
    logger.info(
        "Registered push token for session %s... platform=%s (superseded %s)",
        session_id[:8], platform, len(others),
    )
    return row

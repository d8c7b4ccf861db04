"""Profile and mute lookups used to enrich notifications. All reads stay in the caller's partition."""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hooked.core.constants import FALLBACK_DISPLAY_NAME
from hooked.models.event_profile import EventProfile, MutedMatch

logger = logging.getLogger(__name__)


def display_name(db: Session, profile_id: str | None) -> str:
    """First name for the profile; FALLBACK_DISPLAY_NAME when missing or the lookup fails."""
    if not profile_id:
        return FALLBACK_DISPLAY_NAME
    try:
        profile = db.get(EventProfile, profile_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Display name lookup failed for profile %s: %s", profile_id, e)
        return FALLBACK_DISPLAY_NAME
    return (profile.first_name if profile else None) or FALLBACK_DISPLAY_NAME


def session_for_profile(db: Session, profile_id: str | None) -> str | None:
    if not profile_id:
        return None
    profile = db.get(EventProfile, profile_id)
    return profile.session_id if profile else None


def is_muted(db: Session, event_id: str, muter_session_id: str, muted_session_id: str) -> bool:
    """True when muter has muted muted for this event."""
    return (
        db.query(MutedMatch.id)
        .filter(
            MutedMatch.event_id == event_id,
            MutedMatch.muter_session_id == muter_session_id,
            MutedMatch.muted_session_id == muted_session_id,
        )
        .first()
        is not None
    )


def set_mute(db: Session, event_id: str, muter_session_id: str, muted_session_id: str, muted: bool) -> None:
    """Create or remove the mute row. Idempotent both ways."""
    existing = (
        db.query(MutedMatch)
        .filter(
            MutedMatch.event_id == event_id,
            MutedMatch.muter_session_id == muter_session_id,
            MutedMatch.muted_session_id == muted_session_id,
        )
        .first()
    )
    if muted and existing is None:
        db.add(MutedMatch(event_id=event_id, muter_session_id=muter_session_id, muted_session_id=muted_session_id))
    elif not muted and existing is not None:
        db.delete(existing)
    db.commit()

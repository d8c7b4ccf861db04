from hooked.models.event import Event, EventRoute
from hooked.models.event_profile import EventProfile, MutedMatch
from hooked.models.idempotency_lock import IdempotencyLock, SeenMarker
from hooked.models.notification_job import NotificationJob
from hooked.models.push_token import PushToken

__all__ = [
    "Event",
    "EventProfile",
    "EventRoute",
    "IdempotencyLock",
    "MutedMatch",
    "NotificationJob",
    "PushToken",
    "SeenMarker",
]

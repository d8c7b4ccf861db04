"""
Domain event handlers and the process-wide trigger registry.

registry maps (collection, change_kind) to exactly one handler:
  likes/written, likes/updated  -> mutual like (match jobs)
  messages/created              -> message job
  notification_jobs/created     -> reactive drain of the job's partition
"""
from hooked.handlers.message import handle_message_created
from hooked.handlers.mutual_like import handle_like_change
from hooked.handlers.triggers import (
    CHANGE_CREATED,
    CHANGE_UPDATED,
    CHANGE_WRITTEN,
    ChangeRecord,
    TriggerRegistry,
)


def handle_job_created(record: ChangeRecord) -> None:
    from hooked.scheduler.notification_jobs import request_drain

    request_drain(record.partition)


def build_registry() -> TriggerRegistry:
    registry = TriggerRegistry()
    registry.add("likes", CHANGE_WRITTEN, handle_like_change)
    registry.add("likes", CHANGE_UPDATED, handle_like_change)
    registry.add("messages", CHANGE_CREATED, handle_message_created)
    registry.add("notification_jobs", CHANGE_CREATED, handle_job_created)
    return registry


registry = build_registry()

__all__ = [
    "ChangeRecord",
    "TriggerRegistry",
    "build_registry",
    "handle_job_created",
    "handle_like_change",
    "handle_message_created",
    "registry",
]

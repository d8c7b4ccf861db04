"""
Change-notification dispatch.

The hosting runtime (CDC feed / database triggers) reports every write to a watched collection.
One handler is registered per (collection, change_kind); the partition the write happened in
travels on the ChangeRecord, so the same handler serves every region.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

CHANGE_CREATED = "created"
CHANGE_UPDATED = "updated"
CHANGE_WRITTEN = "written"


@dataclass(frozen=True)
class ChangeRecord:
    partition: str
    collection: str
    change_kind: str
    document_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None


Handler = Callable[[ChangeRecord], Any]


class TriggerRegistry:
    def __init__(self) -> None:
        self._handlers: dict[tuple[str, str], Handler] = {}

    def add(self, collection: str, change_kind: str, handler: Handler) -> None:
        key = (collection, change_kind)
        if key in self._handlers and self._handlers[key] is not handler:
            raise ValueError(f"Handler already registered for {collection}/{change_kind}")
        self._handlers[key] = handler

    def handler_for(self, collection: str, change_kind: str) -> Handler | None:
        return self._handlers.get((collection, change_kind))

    def keys(self) -> list[tuple[str, str]]:
        return sorted(self._handlers)

    def dispatch(self, record: ChangeRecord) -> bool:
        """Run the handler for the record. False when nothing is registered. Handler errors propagate."""
        handler = self.handler_for(record.collection, record.change_kind)
        if handler is None:
            logger.debug("No handler for %s/%s; ignoring %s", record.collection, record.change_kind, record.document_id)
            return False
        handler(record)
        return True

"""
Change notifications from the hosting runtime (CDC feed / database triggers).

POST /triggers/{collection}/{change_kind} with the partition the write happened in and the
document before/after the write. A 500 answer tells the runtime to redeliver; handlers are
idempotent so redelivery is safe.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from hooked.api.deps import get_registry
from hooked.core.errors import InvalidRequest, to_http
from hooked.core.regions import is_partition
from hooked.handlers import ChangeRecord, TriggerRegistry

router = APIRouter()
logger = logging.getLogger(__name__)


class ChangeBody(BaseModel):
    partition: str = Field(..., description="Partition id the document lives in")
    document_id: str = Field(..., min_length=1)
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None


@router.post("/triggers/{collection}/{change_kind}")
def receive_change(
    collection: str,
    change_kind: str,
    body: ChangeBody,
    registry: TriggerRegistry = Depends(get_registry),
) -> dict[str, Any]:
    if not is_partition(body.partition):
        raise to_http(InvalidRequest(f"Unknown partition: {body.partition}"))
    record = ChangeRecord(
        partition=body.partition,
        collection=collection,
        change_kind=change_kind,
        document_id=body.document_id,
        before=body.before,
        after=body.after,
    )
    try:
        handled = registry.dispatch(record)
    except InvalidRequest as e:
        raise to_http(e)
    except Exception as e:
        logger.exception("Handler for %s/%s failed on %s: %s", collection, change_kind, body.document_id, e)
        raise to_http(e)
    return {"ok": True, "handled": handled}

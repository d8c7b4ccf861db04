from hooked.services.idempotency import ClaimResult, claim
from hooked.services.job_queue import drain, drain_all_partitions, enqueue
from hooked.services.regional_router import resolve_by_country, resolve_by_event_id

__all__ = [
    "ClaimResult",
    "claim",
    "drain",
    "drain_all_partitions",
    "enqueue",
    "resolve_by_country",
    "resolve_by_event_id",
]

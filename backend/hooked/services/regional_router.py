"""
Regional store router: which partition owns an event, or should receive a new one.

resolve_by_event_id reads the routing index (event_routes in the default partition) first.
The sequential probe over every partition's events table is the degraded fallback for events
created before the index existed; it is never cached here.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from hooked.core.regions import COUNTRY_PARTITIONS, DEFAULT_PARTITION, PARTITIONS
from hooked.db.session import session_for
from hooked.models.event import Event, EventRoute

logger = logging.getLogger(__name__)


def resolve_by_country(country: str | None) -> str:
    """Static country -> partition lookup; unknown or empty country uses the default partition."""
    return COUNTRY_PARTITIONS.get((country or "").strip(), DEFAULT_PARTITION)


def _lookup_route(event_id: str) -> str | None:
    db = session_for(DEFAULT_PARTITION)
    try:
        row = db.get(EventRoute, event_id)
        if row and row.partition in PARTITIONS:
            return row.partition
        return None
    except SQLAlchemyError as e:
        logger.warning("Routing index lookup failed for event %s: %s", event_id, e)
        return None
    finally:
        db.close()


def _probe_partitions(event_id: str) -> str | None:
    for partition in PARTITIONS:
        db = session_for(partition)
        try:
            if db.get(Event, event_id) is not None:
                return partition
        except SQLAlchemyError as e:
            logger.warning("Probe of partition %s for event %s failed: %s", partition, event_id, e)
            continue
        finally:
            db.close()
    return None


def resolve_by_event_id(event_id: str | None) -> str:
    """Partition holding event_id. Soft-fails to the default partition (warning, not an error)."""
    if not event_id:
        logger.warning("resolve_by_event_id called without event id; using %s", DEFAULT_PARTITION)
        return DEFAULT_PARTITION
    partition = _lookup_route(event_id)
    if partition:
        return partition
    logger.info("Event %s not in routing index; probing partitions", event_id)
    partition = _probe_partitions(event_id)
    if partition:
        return partition
    logger.warning("Event %s not found in any partition; using %s", event_id, DEFAULT_PARTITION)
    return DEFAULT_PARTITION


def register_event(event_id: str, country: str | None, name: str | None = None) -> str:
    """
    Create the event row in its owning partition and record it in the routing index.
    Idempotent: re-registering an existing event keeps its original partition.
    Returns the owning partition.
    """
    existing = _lookup_route(event_id)
    partition = existing or resolve_by_country(country)

    db = session_for(partition)
    try:
        if db.get(Event, event_id) is None:
            db.add(Event(id=event_id, name=name, country=country))
            db.commit()
    finally:
        db.close()

    if existing is None:
        index_db = session_for(DEFAULT_PARTITION)
        try:
            if index_db.get(EventRoute, event_id) is None:
                index_db.add(EventRoute(event_id=event_id, partition=partition))
                index_db.commit()
        finally:
            index_db.close()
        logger.info("Registered event %s in partition %s (country=%s)", event_id, partition, country)
    return partition

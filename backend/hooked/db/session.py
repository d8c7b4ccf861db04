"""
Database sessions and engines, one per regional partition.

Every partition is an independent database with the same tables (shared metadata).
Rows never move between partitions; there are no cross-partition transactions.
Partitions without an entry in PARTITION_DATABASE_URLS use DATABASE_URL (single-database dev setup).
"""
import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hooked.config import settings
from hooked.core.regions import PARTITIONS
from hooked.db.base import Base

_POOL_KWARGS = {
    "pool_size": 8,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_recycle": 300,
    "pool_timeout": 30,
}

_lock = threading.Lock()
_url_overrides: dict[str, str] = {}
# Keyed by URL so partitions sharing a database share one pool
_engines: dict[str, Engine] = {}
_sessionmakers: dict[str, sessionmaker] = {}


def partition_url(partition: str) -> str:
    if partition not in PARTITIONS:
        raise KeyError(f"Unknown partition: {partition}. Available: {list(PARTITIONS)}")
    return (
        _url_overrides.get(partition)
        or settings.partition_database_urls.get(partition)
        or settings.database_url
    )


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Tests and local tooling; pool kwargs are for server databases only
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, **_POOL_KWARGS)


def get_engine(partition: str) -> Engine:
    url = partition_url(partition)
    with _lock:
        engine = _engines.get(url)
        if engine is None:
            engine = _build_engine(url)
            _engines[url] = engine
            _sessionmakers[url] = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        return engine


def session_for(partition: str) -> Session:
    """New session bound to the partition's database. Caller closes it."""
    get_engine(partition)
    return _sessionmakers[partition_url(partition)]()


def configure_partitions(urls: dict[str, str]) -> None:
    """Point partitions at explicit URLs (tests, scripts). Disposes engines created so far."""
    with _lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()
        _sessionmakers.clear()
        _url_overrides.clear()
        _url_overrides.update(urls)


def create_all_partitions() -> None:
    """Create tables in every partition database (dev/tests; production uses Alembic)."""
    import hooked.models  # noqa: F401  (register tables on Base.metadata)

    for partition in PARTITIONS:
        Base.metadata.create_all(bind=get_engine(partition))


from hooked.db.base import Base
from hooked.db.session import configure_partitions, get_engine, session_for
from hooked.db.tables import ALL_TABLE_NAMES

__all__ = [
    "ALL_TABLE_NAMES",
    "Base",
    "configure_partitions",
    "get_engine",
    "session_for",
]

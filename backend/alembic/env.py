"""
Alembic environment. Every partition is its own database with the same schema; pick one with
  alembic -x partition=eu-eur3 upgrade head
(default: the "default" partition). Run once per partition.
"""
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

from hooked.core.regions import DEFAULT_PARTITION
from hooked.db.base import Base
from hooked.db.session import partition_url
from hooked.db.tables import ALL_TABLE_NAMES
import hooked.models  # noqa: F401  (register tables on Base.metadata)

load_dotenv()

# Ensure the models and the table registry agree.
_registered = set(Base.metadata.tables)
_expected = set(ALL_TABLE_NAMES)
assert _registered == _expected, (
    f"Model tables {_registered} must match hooked.db.tables.ALL_TABLE_NAMES {_expected}."
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
_partition = context.get_x_argument(as_dictionary=True).get("partition", DEFAULT_PARTITION)
config.set_main_option("sqlalchemy.url", partition_url(_partition).replace("%", "%%"))


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

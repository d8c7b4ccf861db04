"""
Single source of truth for database tables that exist in every partition after migrations.

alembic/env.py asserts the registered models match this list.
"""
# All tables in each partition database. Must match models and migration 001.
ALL_TABLE_NAMES = (
    "events",
    "event_routes",
    "event_profiles",
    "muted_matches",
    "notification_jobs",
    "notifications_log",
    "push_tokens",
    "system_locks",
)

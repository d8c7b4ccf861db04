#!/usr/bin/env python3
"""
Preflight for the notification service. Run from backend/:
  python scripts/check_backend.py [--port 8000]

Each partition database must answer and carry the migrated tables; a missing API_KEY only warns
(the legacy /notify endpoint then rejects every call).
"""
import argparse
import socket
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def check_partitions() -> list[str]:
    from sqlalchemy import inspect

    from hooked.core.regions import PARTITION_DISPLAY_NAMES, PARTITIONS
    from hooked.db.session import get_engine, session_for
    from hooked.db.tables import ALL_TABLE_NAMES
    from hooked.services.job_queue import queue_stats

    problems = []
    for partition in PARTITIONS:
        label = f"{partition} ({PARTITION_DISPLAY_NAMES[partition]})"
        try:
            missing = sorted(set(ALL_TABLE_NAMES) - set(inspect(get_engine(partition)).get_table_names()))
        except Exception as e:
            problems.append(f"{label}: cannot connect: {e}")
            continue
        if missing:
            problems.append(f"{label}: missing tables {', '.join(missing)}; run alembic -x partition={partition} upgrade head")
            continue
        db = session_for(partition)
        try:
            queued = queue_stats(db)["queued"]
        finally:
            db.close()
        print(f"ok    {label}: {queued} job(s) queued")
    return problems


def check_settings() -> list[str]:
    from hooked.config import settings

    if not settings.api_key:
        print("warn  API_KEY is empty; /notify will answer 403")
    if not settings.expo_access_token:
        print("warn  EXPO_ACCESS_TOKEN is empty; pushes go out unauthenticated")
    return []


def check_port(port: int) -> list[str]:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind(("127.0.0.1", port))
        except OSError:
            return [f"port {port} is taken"]
    print(f"ok    port {port} free")
    return []


def main() -> int:
    parser = argparse.ArgumentParser(description="Check that the notification service can start")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    if not (backend_dir / ".env").exists():
        print("warn  backend/.env not found; using environment and defaults")

    try:
        from hooked.main import app  # noqa: F401
    except Exception as e:
        print(f"FAIL  hooked.main does not import: {e}")
        return 1

    problems = check_settings() + check_partitions() + check_port(args.port)
    for problem in problems:
        print(f"FAIL  {problem}")
    if problems:
        return 1
    print(f"\nReady: uvicorn hooked.main:app --port {args.port}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

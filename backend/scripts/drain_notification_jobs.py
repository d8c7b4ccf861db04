#!/usr/bin/env python3
"""
Run one drain of the notification job queue outside the server (ops / backlog recovery).
Run: cd backend && python scripts/drain_notification_jobs.py [--partition eu-eur3] [--stats]
Without --partition every partition is swept in order. Receipt checks are skipped
(no scheduler in this process); invalid tokens are revoked by the server's next check.
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from hooked.core.regions import PARTITIONS
from hooked.db.session import session_for
from hooked.services.job_queue import drain, drain_all_partitions, queue_stats
from hooked.services.push import PushDispatcher


def _print_stats(partitions):
    for partition in partitions:
        db = session_for(partition)
        try:
            counts = queue_stats(db)
        finally:
            db.close()
        print(f"{partition:20} " + "  ".join(f"{k}={v}" for k, v in counts.items()))


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--partition", choices=PARTITIONS, help="Drain one partition only")
    parser.add_argument("--stats", action="store_true", help="Print queue counts and exit")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    partitions = [args.partition] if args.partition else list(PARTITIONS)
    if args.stats:
        _print_stats(partitions)
        return 0

    dispatcher = PushDispatcher(on_tickets=lambda tickets, tokens: None)
    if args.partition:
        results = [drain(args.partition, dispatcher=dispatcher)]
    else:
        results = drain_all_partitions(dispatcher)
    for r in results:
        print(
            f"{r.partition:20} sent={r.sent} skipped={r.skipped} retried={r.retried} "
            f"failed={r.permanent_failures}" + (" (busy)" if r.busy else "")
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())

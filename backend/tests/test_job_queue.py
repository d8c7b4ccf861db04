"""Job queue: enqueue dedup and the drain's per-job bookkeeping."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from conftest import add_token
from hooked.core.constants import (
    STATUS_PERMANENT_FAILURE,
    STATUS_QUEUED,
    STATUS_SENT,
    STATUS_SKIPPED,
)
from hooked.core.errors import InvalidRequest
from hooked.core.timeutil import utcnow
from hooked.db.session import session_for
from hooked.models.notification_job import NotificationJob
from hooked.services import job_queue
from hooked.services.job_queue import (
    drain,
    drain_all_partitions,
    enqueue,
    has_pending_jobs,
    prune_terminal_jobs,
    queue_stats,
)


def _job(subject: str = "sess-a", key: str = "match:e1:sess-a", type_: str = "match", **kwargs) -> NotificationJob:
    return NotificationJob(
        type=type_,
        event_id=kwargs.pop("event_id", "e1"),
        subject_session_id=subject,
        aggregation_key=key,
        payload=kwargs.pop("payload", {"title": "Hi", "body": "there", "data": {"type": type_, "aggregationKey": key}}),
        **kwargs,
    )


def _enqueue(partition: str = "default", job: NotificationJob | None = None, now=None) -> NotificationJob | None:
    db = session_for(partition)
    try:
        return enqueue(db, job or _job(), now=now, partition=partition)
    finally:
        db.close()


def _load(partition: str, job_id: int) -> NotificationJob:
    db = session_for(partition)
    try:
        return db.get(NotificationJob, job_id)
    finally:
        db.close()


def test_enqueue_stores_queued_job() -> None:
    job = _enqueue()
    assert job is not None
    stored = _load("default", job.id)
    assert stored.status == STATUS_QUEUED
    assert stored.attempts == 0
    assert stored.skip_push is False


def test_enqueue_dedups_within_two_minutes() -> None:
    t0 = utcnow()
    assert _enqueue(now=t0) is not None
    assert _enqueue(now=t0 + timedelta(seconds=60)) is None
    assert _enqueue(job=_job(subject="sess-b", key="match:e1:sess-b"), now=t0 + timedelta(seconds=60)) is not None
    assert _enqueue(now=t0 + timedelta(seconds=121)) is not None


def test_enqueue_rejects_unknown_type() -> None:
    with pytest.raises(InvalidRequest):
        _enqueue(job=_job(type_="poke"))


def test_concurrent_identical_enqueues_store_one_job() -> None:
    t0 = utcnow()
    with ThreadPoolExecutor(max_workers=4) as pool:
        stored = list(pool.map(lambda _: _enqueue(now=t0), range(4)))

    assert sum(1 for job in stored if job is not None) == 1
    db = session_for("default")
    try:
        assert db.query(NotificationJob).count() == 1
    finally:
        db.close()


def test_enqueue_notifies_listener_with_partition() -> None:
    seen = []
    job_queue.add_enqueue_listener(lambda partition, job: seen.append((partition, job.id)))
    job = _enqueue("eu-eur3")
    assert seen == [("eu-eur3", job.id)]


def test_drain_sends_and_marks_sent(dispatcher, expo) -> None:
    add_token("default", "sess-a", "ExponentPushToken[a]")
    job = _enqueue()

    result = drain("default", dispatcher=dispatcher)

    assert result.sent == 1
    assert _load("default", job.id).status == STATUS_SENT
    [message] = expo.sent_messages
    assert message["to"] == "ExponentPushToken[a]"
    assert message["collapseId"] == "match:e1:sess-a"
    assert message["channelId"] == "matches"
    assert len(expo.tickets) == 1


def test_drain_skip_push_records_reason(dispatcher, expo) -> None:
    add_token("default", "sess-a", "tok")
    with_reason = _enqueue(job=_job(skip_push=True, job_metadata={"reason": "in_chat"}))
    without_reason = _enqueue(job=_job(subject="sess-b", key="k-b", skip_push=True))

    drain("default", dispatcher=dispatcher)

    first, second = _load("default", with_reason.id), _load("default", without_reason.id)
    assert (first.status, first.skipped_reason) == (STATUS_SKIPPED, "in_chat")
    assert (second.status, second.skipped_reason) == (STATUS_SKIPPED, "user_active")
    assert expo.push_requests == []


def test_drain_without_tokens_is_permanent_failure(dispatcher) -> None:
    add_token("us-nam5", "sess-a", "token-in-other-partition")
    job = _enqueue()

    drain("default", dispatcher=dispatcher)

    stored = _load("default", job.id)
    assert stored.status == STATUS_PERMANENT_FAILURE
    assert stored.error == "No push tokens found for recipient"


def test_drain_ignores_inactive_tokens(dispatcher) -> None:
    add_token("default", "sess-a", "dead", active=False)
    job = _enqueue()
    drain("default", dispatcher=dispatcher)
    assert _load("default", job.id).status == STATUS_PERMANENT_FAILURE


def test_drain_expires_stale_jobs(dispatcher, expo) -> None:
    add_token("default", "sess-a", "tok")
    job = _enqueue(now=utcnow() - timedelta(hours=25))

    drain("default", dispatcher=dispatcher)

    stored = _load("default", job.id)
    assert stored.status == STATUS_PERMANENT_FAILURE
    assert stored.error == "Job expired after 24 hours"
    assert expo.push_requests == []


def test_drain_retries_then_fails_after_five_attempts(dispatcher, expo) -> None:
    add_token("default", "sess-a", "tok")
    expo.status = 500
    job = _enqueue()

    for attempt in range(1, 5):
        result = drain("default", dispatcher=dispatcher)
        assert result.retried == 1
        stored = _load("default", job.id)
        assert (stored.status, stored.attempts) == (STATUS_QUEUED, attempt)
        assert "status=500" in stored.error

    drain("default", dispatcher=dispatcher)
    stored = _load("default", job.id)
    assert (stored.status, stored.attempts) == (STATUS_PERMANENT_FAILURE, 5)
    assert drain("default", dispatcher=dispatcher).processed == 0


def test_drain_counts_dispatcher_exception_as_failure(dispatcher, monkeypatch) -> None:
    add_token("default", "sess-a", "tok")
    job = _enqueue()

    def boom(*args, **kwargs):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(dispatcher, "send", boom)
    drain("default", dispatcher=dispatcher)

    stored = _load("default", job.id)
    assert (stored.status, stored.attempts, stored.error) == (STATUS_QUEUED, 1, "socket closed")


def test_drain_takes_ten_oldest(dispatcher) -> None:
    t0 = utcnow() - timedelta(minutes=30)
    ids = []
    for i in range(12):
        add_token("default", f"sess-{i}", f"tok-{i}")
        job = _enqueue(job=_job(subject=f"sess-{i}", key=f"k-{i}"), now=t0 + timedelta(seconds=i))
        ids.append(job.id)

    first = drain("default", dispatcher=dispatcher)
    assert first.job_ids == ids[:10]
    second = drain("default", dispatcher=dispatcher)
    assert second.job_ids == ids[10:]


def test_drain_skips_when_partition_already_draining(dispatcher) -> None:
    _enqueue()
    lock = job_queue._drain_locks["default"]
    lock.acquire()
    try:
        result = drain("default", dispatcher=dispatcher)
    finally:
        lock.release()
    assert result.busy is True
    assert result.processed == 0


class _PausingDispatcher:
    """Holds the first send until released so a second drain can overlap it."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.sending = threading.Event()
        self.release = threading.Event()

    def send(self, tokens, payload, collapse_key):
        if not self.sending.is_set():
            self.sending.set()
            self.release.wait(timeout=5)
        return self.inner.send(tokens, payload, collapse_key)


def test_job_enqueued_mid_drain_is_sent_by_running_drain(dispatcher) -> None:
    add_token("default", "sess-a", "tok-a")
    add_token("default", "sess-b", "tok-b")
    first = _enqueue(job=_job(subject="sess-a", key="k-a"))
    pausing = _PausingDispatcher(dispatcher)
    outcome = {}
    running = threading.Thread(target=lambda: outcome.update(result=drain("default", dispatcher=pausing)))
    running.start()
    try:
        assert pausing.sending.wait(timeout=5)
        second = _enqueue(job=_job(subject="sess-b", key="k-b"))
        overlapping = drain("default", dispatcher=dispatcher)
    finally:
        pausing.release.set()
        running.join(timeout=10)

    assert overlapping.busy is True
    assert outcome["result"].job_ids == [first.id, second.id]
    assert _load("default", second.id).status == STATUS_SENT


def test_drain_all_partitions_sweeps_each(dispatcher) -> None:
    add_token("default", "sess-a", "tok-a")
    add_token("asia-ne1", "sess-b", "tok-b")
    _enqueue("default")
    _enqueue("asia-ne1", job=_job(subject="sess-b", key="k-b"))

    results = drain_all_partitions(dispatcher)

    by_partition = {r.partition: r for r in results}
    assert by_partition["default"].sent == 1
    assert by_partition["asia-ne1"].sent == 1
    assert sum(r.processed for r in results) == 2


def test_drain_all_partitions_stops_when_budget_spent(dispatcher) -> None:
    ticks = iter([0.0, 0.0, 100.0, 100.0, 100.0, 100.0, 100.0])
    results = drain_all_partitions(dispatcher, time_budget_seconds=50, clock=lambda: next(ticks))
    assert [r.partition for r in results] == ["default"]


def test_queue_stats_pending_and_prune(dispatcher) -> None:
    add_token("default", "sess-a", "tok")
    sent = _enqueue()
    _enqueue(job=_job(subject="sess-b", key="k-b"))
    drain("default", dispatcher=dispatcher)
    _enqueue(job=_job(subject="sess-c", key="k-c", event_id="e3"))

    db = session_for("default")
    try:
        stats = queue_stats(db)
        assert stats == {"queued": 1, "sent": 1, "skipped": 0, "permanent-failure": 1}
        assert has_pending_jobs(db, "e1") is False
        assert has_pending_jobs(db, "e3") is True

        assert prune_terminal_jobs(db, 14) == 0
        assert prune_terminal_jobs(db, 14, now=utcnow() + timedelta(days=15)) == 2
        assert db.get(NotificationJob, sent.id) is None
        assert queue_stats(db)["queued"] == 1
    finally:
        db.close()

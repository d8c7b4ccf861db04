"""Partition routing: country table, routing index and the probe fallback."""
from __future__ import annotations

from hooked.core.regions import DEFAULT_PARTITION
from hooked.db.session import configure_partitions, session_for
from hooked.models.event import Event, EventRoute
from hooked.services.regional_router import register_event, resolve_by_country, resolve_by_event_id


def test_resolve_by_country_uses_static_table() -> None:
    assert resolve_by_country("Israel") == DEFAULT_PARTITION
    assert resolve_by_country("New Zealand") == "au-southeast2"
    assert resolve_by_country("Canada") == "us-nam5"
    assert resolve_by_country("Germany") == "eu-eur3"
    assert resolve_by_country("Japan") == "asia-ne1"
    assert resolve_by_country("Brazil") == "southamerica-east1"


def test_resolve_by_country_unknown_or_empty_is_default() -> None:
    assert resolve_by_country("Atlantis") == DEFAULT_PARTITION
    assert resolve_by_country("") == DEFAULT_PARTITION
    assert resolve_by_country(None) == DEFAULT_PARTITION


def test_register_event_writes_owning_partition_and_index() -> None:
    assert register_event("evt-us", "United States", name="Launch party") == "us-nam5"

    db = session_for("us-nam5")
    try:
        assert db.get(Event, "evt-us").name == "Launch party"
    finally:
        db.close()
    index = session_for(DEFAULT_PARTITION)
    try:
        assert index.get(EventRoute, "evt-us").partition == "us-nam5"
    finally:
        index.close()
    assert resolve_by_event_id("evt-us") == "us-nam5"


def test_register_event_is_idempotent_and_keeps_partition() -> None:
    register_event("evt-1", "Japan")
    assert register_event("evt-1", "Brazil") == "asia-ne1"
    db = session_for("southamerica-east1")
    try:
        assert db.get(Event, "evt-1") is None
    finally:
        db.close()


def test_probe_finds_unindexed_event() -> None:
    db = session_for("eu-eur3")
    try:
        db.add(Event(id="legacy-evt", country="France"))
        db.commit()
    finally:
        db.close()
    assert resolve_by_event_id("legacy-evt") == "eu-eur3"


def test_unknown_event_soft_fails_to_default() -> None:
    assert resolve_by_event_id("nope") == DEFAULT_PARTITION
    assert resolve_by_event_id(None) == DEFAULT_PARTITION


def test_probe_continues_past_failing_partition(partitions, tmp_path) -> None:
    db = session_for("asia-ne1")
    try:
        db.add(Event(id="evt-asia"))
        db.commit()
    finally:
        db.close()
    broken = dict(partitions)
    broken["au-southeast2"] = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'au.db'}"
    configure_partitions(broken)

    assert resolve_by_event_id("evt-asia") == "asia-ne1"

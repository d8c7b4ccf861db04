"""Shared fixtures: one SQLite database per partition and a mock Expo endpoint."""
from __future__ import annotations

import json

import httpx
import pytest

from hooked.core.regions import PARTITIONS
from hooked.db.session import configure_partitions, create_all_partitions, session_for
from hooked.models.event_profile import EventProfile
from hooked.models.push_token import PushToken
from hooked.services import job_queue
from hooked.services.push import ExpoConfig, ExpoPushClient, PushDispatcher


@pytest.fixture(autouse=True)
def partitions(tmp_path):
    """Fresh database files for every partition, for every test."""

    urls = {p: f"sqlite:///{tmp_path / (p + '.db')}" for p in PARTITIONS}
    configure_partitions(urls)
    create_all_partitions()
    yield urls
    job_queue._enqueue_listeners.clear()
    for rerun in job_queue._drain_reruns.values():
        rerun.clear()
    configure_partitions({})


class FakeExpo:
    """Stands in for exp.host: records push bodies, answers with one ticket per message."""

    def __init__(self) -> None:
        self.push_requests: list[list[dict]] = []
        self.receipt_requests: list[dict] = []
        self.headers: list[httpx.Headers] = []
        self.status = 200
        self.receipts: dict[str, dict] = {}
        self.tickets: list[tuple[list[dict], list[str]]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.headers.append(request.headers)
        if request.url.path.endswith("getReceipts"):
            self.receipt_requests.append(body)
            return httpx.Response(200, json={"data": self.receipts})
        self.push_requests.append(body)
        if self.status != 200:
            return httpx.Response(self.status, text="provider unavailable")
        n = len(self.push_requests)
        return httpx.Response(
            200,
            json={"data": [{"status": "ok", "id": f"ticket-{n}-{i}"} for i, _ in enumerate(body)]},
        )

    def client(self, access_token: str = "") -> ExpoPushClient:
        return ExpoPushClient(ExpoConfig(access_token=access_token), transport=httpx.MockTransport(self.handler))

    @property
    def sent_messages(self) -> list[dict]:
        return [m for body in self.push_requests for m in body]


@pytest.fixture()
def expo() -> FakeExpo:
    return FakeExpo()


@pytest.fixture()
def dispatcher(expo: FakeExpo) -> PushDispatcher:
    return PushDispatcher(
        expo.client(),
        on_tickets=lambda tickets, tokens: expo.tickets.append((tickets, tokens)),
        sleep=lambda seconds: None,
    )


def add_token(partition: str, session_id: str, token: str, platform: str = "ios", active: bool = True) -> None:
    db = session_for(partition)
    try:
        db.add(PushToken(session_id=session_id, platform=platform, token=token, is_active=active))
        db.commit()
    finally:
        db.close()


def add_profile(partition: str, profile_id: str, event_id: str, session_id: str, first_name: str | None) -> None:
    db = session_for(partition)
    try:
        db.add(EventProfile(id=profile_id, event_id=event_id, session_id=session_id, first_name=first_name))
        db.commit()
    finally:
        db.close()

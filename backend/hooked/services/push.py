"""
Send push notifications via the Expo push service.

Tokens are sent in chunks of PUSH_CHUNK_SIZE, one provider request per chunk, with a short pause
between chunks. Each message carries a collapse key (provider dedup / iOS thread), an Android
channel per notification type, and a fresh notificationId + timestamp for client-side dedup.
A 200 chunk with tickets schedules a delayed receipt check (see receipts.py).
Transport errors never raise out of send(); they come back as a chunk result with status 0.
"""
import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from hooked.config import settings
from hooked.core.constants import (
    JOB_TYPE_MATCH,
    JOB_TYPE_MESSAGE,
    PUSH_CHUNK_DELAY_SECONDS,
    PUSH_CHUNK_SIZE,
    PUSH_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

CHANNEL_MESSAGES = "messages"
CHANNEL_MATCHES = "matches"
CHANNEL_DEFAULT = "default"

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ExpoConfig:
    """Endpoints and optional access token for Expo."""

    __slots__ = ("push_url", "receipts_url", "access_token")

    def __init__(
        self,
        *,
        push_url: str | None = None,
        receipts_url: str | None = None,
        access_token: str | None = None,
    ) -> None:
        self.push_url = push_url or settings.expo_push_url
        self.receipts_url = receipts_url or settings.expo_receipts_url
        self.access_token = (access_token if access_token is not None else settings.expo_access_token).strip()

    def headers(self) -> dict[str, str]:
        h = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            h["Authorization"] = f"Bearer {self.access_token}"
        return h


@dataclass
class ChunkResult:
    status: int
    json: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == 200

    def tickets(self) -> list[dict[str, Any]]:
        data = self.json.get("data") if isinstance(self.json, dict) else None
        return data if isinstance(data, list) else []


@dataclass
class PushResult:
    sent: int
    results: list[ChunkResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    def describe(self) -> str:
        return "; ".join(
            f"status={r.status}" + (f" error={r.error}" if r.error else "") for r in self.results
        )


class ExpoPushClient:
    """Expo push + receipts client: lowest level, sends requests only."""

    def __init__(
        self,
        config: ExpoConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float = PUSH_TIMEOUT_SECONDS,
    ) -> None:
        self._config = config or ExpoConfig()
        self._transport = transport
        self._timeout = timeout

    def _post(self, url: str, body: Any) -> ChunkResult:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as c:
                r = c.post(url, json=body, headers=self._config.headers())
        except httpx.HTTPError as e:
            logger.warning("Expo request to %s failed: %s", url, e)
            return ChunkResult(status=0, error=str(e) or e.__class__.__name__)
        try:
            payload = r.json() if r.content else None
        except ValueError:
            payload = None
        error = None if r.status_code == 200 else (r.text[:500] if r.text else f"HTTP {r.status_code}")
        return ChunkResult(status=r.status_code, json=payload, error=error)

    def send_messages(self, messages: list[dict[str, Any]]) -> ChunkResult:
        return self._post(self._config.push_url, messages)

    def get_receipts(self, ticket_ids: list[str]) -> dict[str, Any]:
        """Receipts keyed by ticket id. Empty dict when the request fails."""
        result = self._post(self._config.receipts_url, {"ids": ticket_ids})
        if not result.ok or not isinstance(result.json, dict):
            logger.warning("Expo receipts request failed: status=%s %s", result.status, result.error)
            return {}
        data = result.json.get("data")
        return data if isinstance(data, dict) else {}


def _now_ms() -> int:
    return int(time.time() * 1000)


def resolve_collapse_key(payload: dict[str, Any], now_ms: int | None = None) -> str:
    """
    Collapse/aggregation key: explicit data.aggregationKey; else per type
    (match: sorted session pair; message: conversation, sorted sender/target pair, or a time-based
    fallback); else data.type; else "default".
    """
    data = payload.get("data") or {}
    explicit = data.get("aggregationKey")
    if explicit:
        return str(explicit)
    ms = now_ms if now_ms is not None else _now_ms()
    kind = data.get("type")
    if kind == JOB_TYPE_MATCH:
        other = data.get("otherSessionId") or data.get("partnerSessionId")
        sessions = sorted(s for s in (other, data.get("targetSessionId")) if s)
        if len(sessions) == 2:
            return f"match_{sessions[0]}_{sessions[1]}"
        return f"match_{kind}_{ms}"
    if kind == JOB_TYPE_MESSAGE:
        if data.get("conversationId"):
            return f"message_{data['conversationId']}"
        sender, target = data.get("senderSessionId"), data.get("targetSessionId")
        if sender and target:
            first, second = sorted((sender, target))
            return f"message_{first}_{second}"
        # Time-based fallback so unrelated messages are not grouped together
        return f"message_{kind}_{str(ms)[-6:]}"
    return str(kind) if kind else "default"


def channel_for(notification_type: str | None) -> str:
    """Client delivery channel (Android channel / iOS category) per notification type."""
    if notification_type == JOB_TYPE_MESSAGE:
        return CHANNEL_MESSAGES
    if notification_type == JOB_TYPE_MATCH:
        return CHANNEL_MATCHES
    return CHANNEL_DEFAULT


def _notification_id(collapse_key: str, ms: int) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{collapse_key}_{ms}_{suffix}"


def build_messages(
    tokens: list[str],
    payload: dict[str, Any],
    collapse_key: str,
    now_ms: int | None = None,
) -> list[dict[str, Any]]:
    """One provider message per token."""
    title = payload.get("title") or ""
    body = payload.get("body") or ""
    data = dict(payload.get("data") or {})
    channel = channel_for(data.get("type"))
    messages = []
    for to in tokens:
        ms = now_ms if now_ms is not None else _now_ms()
        messages.append({
            "to": to,
            "title": title,
            "body": body,
            "sound": "default",
            "priority": "high",
            "collapseId": collapse_key,
            "threadId": collapse_key,
            "channelId": channel,
            "categoryId": channel,
            "data": {
                **data,
                "notificationId": _notification_id(collapse_key, ms),
                "timestamp": str(ms),
            },
            "notification": {"title": title, "body": body},
            "apns": {
                "payload": {
                    "aps": {"mutable-content": 1, "sound": "default", "badge": 1},
                },
            },
            "android": {
                "channelId": channel,
                "priority": "high",
                "sound": "default",
                "vibrate": True,
                "notification": {"sound": "default", "clickAction": "NOTIFICATION_CLICK"},
            },
            "ios": {"sound": "default", "badge": 1},
        })
    return messages


def chunked(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


TicketCallback = Callable[[list[dict[str, Any]], list[str]], None]


class PushDispatcher:
    """Batches tokens, shapes provider messages, sends, and hands tickets to receipt reconciliation."""

    def __init__(
        self,
        client: ExpoPushClient | None = None,
        *,
        on_tickets: TicketCallback | None = None,
        chunk_size: int = PUSH_CHUNK_SIZE,
        chunk_delay_seconds: float = PUSH_CHUNK_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if on_tickets is None:
            from hooked.services.receipts import schedule_receipt_check

            on_tickets = schedule_receipt_check
        self._client = client or ExpoPushClient()
        self._on_tickets = on_tickets
        self._chunk_size = chunk_size
        self._chunk_delay = chunk_delay_seconds
        self._sleep = sleep

    @property
    def client(self) -> ExpoPushClient:
        return self._client

    def send(
        self,
        tokens: list[str],
        payload: dict[str, Any],
        collapse_key: str | None = None,
    ) -> PushResult:
        if not tokens:
            return PushResult(sent=0)
        key = collapse_key or resolve_collapse_key(payload)
        results: list[ChunkResult] = []
        for i, chunk in enumerate(chunked(tokens, self._chunk_size)):
            if i > 0:
                self._sleep(self._chunk_delay)
            result = self._client.send_messages(build_messages(chunk, payload, key))
            results.append(result)
            if result.ok:
                tickets = result.tickets()
                if tickets:
                    try:
                        self._on_tickets(tickets, chunk)
                    except Exception as e:
                        logger.warning("Could not schedule receipt check: %s", e, exc_info=True)
            else:
                logger.warning("Expo push chunk %s failed: status=%s %s", i, result.status, result.error)
        return PushResult(sent=len(tokens), results=results)

"""Push dispatcher: message shaping, collapse keys, chunking and provider errors."""
from __future__ import annotations

import httpx

from hooked.services.push import (
    ExpoConfig,
    ExpoPushClient,
    PushDispatcher,
    build_messages,
    channel_for,
    resolve_collapse_key,
)


def test_resolve_collapse_key_prefers_explicit_aggregation_key() -> None:
    payload = {"data": {"type": "match", "aggregationKey": "match:e1:s1"}}
    assert resolve_collapse_key(payload) == "match:e1:s1"


def test_resolve_collapse_key_per_type() -> None:
    match = {"data": {"type": "match", "partnerSessionId": "zed", "targetSessionId": "amy"}}
    assert resolve_collapse_key(match) == "match_amy_zed"
    assert resolve_collapse_key({"data": {"type": "match"}}, now_ms=1700000000123) == "match_match_1700000000123"

    assert resolve_collapse_key({"data": {"type": "message", "conversationId": "p-9"}}) == "message_p-9"
    pair = {"data": {"type": "message", "senderSessionId": "s2", "targetSessionId": "s1"}}
    assert resolve_collapse_key(pair) == "message_s1_s2"
    assert resolve_collapse_key({"data": {"type": "message"}}, now_ms=1700000654321) == "message_message_654321"

    assert resolve_collapse_key({"data": {"type": "generic"}}) == "generic"
    assert resolve_collapse_key({}) == "default"


def test_channel_for_type() -> None:
    assert channel_for("message") == "messages"
    assert channel_for("match") == "matches"
    assert channel_for("generic") == "default"
    assert channel_for(None) == "default"


def test_build_messages_shape() -> None:
    payload = {"title": "New message from Dana", "body": "hey", "data": {"type": "message", "conversationId": "p1"}}
    [msg] = build_messages(["ExponentPushToken[x]"], payload, "message:e1:p1", now_ms=1700000000000)

    assert msg["to"] == "ExponentPushToken[x]"
    assert msg["collapseId"] == msg["threadId"] == "message:e1:p1"
    assert msg["channelId"] == msg["android"]["channelId"] == "messages"
    assert msg["priority"] == "high"
    assert msg["notification"] == {"title": "New message from Dana", "body": "hey"}
    assert msg["apns"]["payload"]["aps"]["mutable-content"] == 1
    assert msg["ios"] == {"sound": "default", "badge": 1}
    assert msg["data"]["conversationId"] == "p1"
    assert msg["data"]["timestamp"] == "1700000000000"
    prefix, ms, suffix = msg["data"]["notificationId"].rsplit("_", 2)
    assert (prefix, ms) == ("message:e1:p1", "1700000000000")
    assert len(suffix) == 9 and suffix.isalnum()


def test_send_chunks_by_hundred_and_pauses_between_chunks(expo) -> None:
    pauses: list[float] = []
    dispatcher = PushDispatcher(
        expo.client(),
        on_tickets=lambda tickets, tokens: expo.tickets.append((tickets, tokens)),
        sleep=pauses.append,
    )
    tokens = [f"tok-{i}" for i in range(250)]

    result = dispatcher.send(tokens, {"title": "t", "body": "b", "data": {"type": "generic"}})

    assert result.ok
    assert result.sent == 250
    assert [len(body) for body in expo.push_requests] == [100, 100, 50]
    assert pauses == [0.05, 0.05]
    assert [tok for _, chunk in expo.tickets for tok in chunk] == tokens
    assert all(len(tickets) == len(chunk) for tickets, chunk in expo.tickets)


def test_send_reports_non_200_chunk(expo, dispatcher) -> None:
    expo.status = 503
    result = dispatcher.send(["tok"], {"title": "t"})
    assert not result.ok
    assert result.results[0].status == 503
    assert expo.tickets == []


def test_transport_error_becomes_status_zero() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = ExpoPushClient(ExpoConfig(access_token=""), transport=httpx.MockTransport(refuse))
    dispatcher = PushDispatcher(client, on_tickets=lambda *a: None, sleep=lambda s: None)

    result = dispatcher.send(["tok"], {"title": "t"})

    assert not result.ok
    assert result.results[0].status == 0
    assert "connection refused" in result.describe()


def test_access_token_sent_as_bearer(expo) -> None:
    dispatcher = PushDispatcher(expo.client(access_token="secret"), on_tickets=lambda *a: None)
    dispatcher.send(["tok"], {"title": "t"})
    assert expo.headers[0]["authorization"] == "Bearer secret"


def test_send_without_tokens_makes_no_request(expo, dispatcher) -> None:
    result = dispatcher.send([], {"title": "t"})
    assert result.sent == 0
    assert expo.push_requests == []

"""Unit tests for Web Push registration and broadcast"""

import pytest
from splitpay_gateway.domain.exceptions import ConfigurationError, PushDeliveryError
from splitpay_gateway.services.notifications import DEFAULT_PAYLOAD, broadcast, save_subscription


def subscription(endpoint: str) -> dict:
    return {"endpoint": endpoint, "keys": {"p256dh": "key", "auth": "secret"}}


async def test_save_subscription_upserts_by_endpoint(push_store):
    await save_subscription(push_store, subscription("https://push.example/1"))
    updated = {**subscription("https://push.example/1"), "keys": {"p256dh": "new", "auth": "new"}}
    await save_subscription(push_store, updated)

    assert await push_store.all() == [updated]


async def test_broadcast_isolates_failures_and_prunes_gone(push_store, push_sender):
    for endpoint in ("https://push.example/ok", "https://push.example/gone", "https://push.example/busy"):
        await push_store.upsert(endpoint, subscription(endpoint))

    async def send(sub, payload):
        if sub["endpoint"].endswith("gone"):
            raise PushDeliveryError("Push failed: 410 Gone", status_code=410)
        if sub["endpoint"].endswith("busy"):
            raise PushDeliveryError("Push failed: 429", status_code=429)
        return 201

    push_sender.send.side_effect = send

    results = await broadcast(push_store, push_sender, {"title": "Hi"})

    by_endpoint = {r.endpoint: r for r in results}
    assert by_endpoint["https://push.example/ok"].status == "fulfilled"
    assert by_endpoint["https://push.example/gone"].pruned is True
    assert by_endpoint["https://push.example/busy"].status == "rejected"
    assert by_endpoint["https://push.example/busy"].pruned is False
    remaining = sorted(s["endpoint"] for s in await push_store.all())
    assert remaining == ["https://push.example/busy", "https://push.example/ok"]


async def test_broadcast_uses_default_payload(push_store, push_sender):
    await push_store.upsert("https://push.example/1", subscription("https://push.example/1"))
    push_sender.send.return_value = 201

    await broadcast(push_store, push_sender)

    assert push_sender.send.call_args.args[1] == DEFAULT_PAYLOAD


async def test_broadcast_without_vapid_keys(push_store, push_sender):
    push_sender.ensure_configured.side_effect = ConfigurationError("VAPID_SUBJECT / VAPID_PRIVATE_KEY are not configured.")

    with pytest.raises(ConfigurationError):
        await broadcast(push_store, push_sender)

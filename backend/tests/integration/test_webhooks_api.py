"""Webhook endpoints: unauthenticated routes that verify their own signatures."""

import hashlib
import hmac
import json

import pytest
from pydantic import SecretStr

from nskai.config.settings import get_settings


@pytest.mark.asyncio
async def test_paystack_webhook_rejects_bad_signature(client_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "PAYSTACK_SECRET_KEY", SecretStr("sk_test_api"))
    client = await client_factory()

    resp = await client.post(
        "/api/v1/webhooks/paystack",
        content=b'{"event":"charge.success"}',
        headers={"x-paystack-signature": "deadbeef"},
    )

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_paystack_webhook_acknowledges_other_events(client_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "PAYSTACK_SECRET_KEY", SecretStr("sk_test_api"))
    body = json.dumps({"event": "subscription.create", "data": {}}).encode()
    signature = hmac.new(b"sk_test_api", body, hashlib.sha512).hexdigest()
    client = await client_factory()

    resp = await client.post("/api/v1/webhooks/paystack", content=body, headers={"x-paystack-signature": signature})

    assert resp.status_code == 200
    assert resp.json() == {"status": "ignored"}


@pytest.mark.asyncio
async def test_mux_webhook_requires_signature(client_factory) -> None:
    client = await client_factory()

    resp = await client.post("/api/v1/webhooks/mux", content=b"{}")

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_clerk_webhook_without_secret_is_rejected(client_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "CLERK_WEBHOOK_SECRET", SecretStr(""))
    client = await client_factory()

    resp = await client.post("/api/v1/webhooks/clerk", content=b"{}")

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_health(client_factory) -> None:
    resp = await (await client_factory()).get("/health")

    assert resp.status_code == 200

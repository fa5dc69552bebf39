"""Webhook signature verification for Paystack, Mux and Clerk (Svix)."""

import base64
import hashlib
import hmac

import pytest

from nskai.exceptions import WebhookVerificationError
from nskai.payments.paystack import verify_paystack_signature
from nskai.users.webhooks import verify_svix_signature
from nskai.videos.mux import parse_mux_signature, verify_mux_signature


BODY = b'{"event":"charge.success"}'


def test_paystack_signature_accepts_hmac_sha512() -> None:
    signature = hmac.new(b"sk_test", BODY, hashlib.sha512).hexdigest()
    verify_paystack_signature(BODY, signature, secret="sk_test")


def test_paystack_signature_rejects_tampered_body() -> None:
    signature = hmac.new(b"sk_test", BODY, hashlib.sha512).hexdigest()
    with pytest.raises(WebhookVerificationError):
        verify_paystack_signature(BODY + b" ", signature, secret="sk_test")


def test_paystack_signature_requires_header_and_secret() -> None:
    with pytest.raises(WebhookVerificationError):
        verify_paystack_signature(BODY, None, secret="sk_test")
    with pytest.raises(WebhookVerificationError):
        verify_paystack_signature(BODY, "abc", secret="")


def _mux_header(secret: str, timestamp: int, body: bytes = BODY) -> str:
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_parse_mux_signature() -> None:
    assert parse_mux_signature("t=100,v1=aa,v1=bb") == ("100", ["aa", "bb"])


def test_mux_signature_valid_within_tolerance() -> None:
    verify_mux_signature(BODY, _mux_header("mux_secret", 1_000), "mux_secret", now=1_100)


def test_mux_signature_rejects_stale_timestamp() -> None:
    with pytest.raises(WebhookVerificationError):
        verify_mux_signature(BODY, _mux_header("mux_secret", 1_000), "mux_secret", now=2_000)


def test_mux_signature_rejects_wrong_secret() -> None:
    with pytest.raises(WebhookVerificationError):
        verify_mux_signature(BODY, _mux_header("other", 1_000), "mux_secret", now=1_000)


def _svix_signature(key: bytes, svix_id: str, timestamp: str, body: bytes = BODY) -> str:
    content = f"{svix_id}.{timestamp}.".encode() + body
    return "v1," + base64.b64encode(hmac.new(key, content, hashlib.sha256).digest()).decode()


def test_svix_signature_accepts_any_matching_entry() -> None:
    key = b"clerk-webhook-key"
    secret = "whsec_" + base64.b64encode(key).decode()
    header = "v1,bm9wZQ== " + _svix_signature(key, "msg_1", "1000")

    verify_svix_signature(BODY, "msg_1", "1000", header, secret, now=1_010)


def test_svix_signature_rejects_missing_headers() -> None:
    with pytest.raises(WebhookVerificationError):
        verify_svix_signature(BODY, None, "1000", "v1,abc", "whsec_a2V5", now=1_000)


def test_svix_signature_rejects_other_message_id() -> None:
    key = b"clerk-webhook-key"
    secret = "whsec_" + base64.b64encode(key).decode()
    header = _svix_signature(key, "msg_1", "1000")

    with pytest.raises(WebhookVerificationError):
        verify_svix_signature(BODY, "msg_2", "1000", header, secret, now=1_000)

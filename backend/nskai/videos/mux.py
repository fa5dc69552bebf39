"""Mux Video API client and webhook signature verification."""

import hashlib
import hmac
import logging
import time
from typing import Any

import httpx

from nskai.config.settings import get_settings
from nskai.exceptions import WebhookVerificationError
from nskai.middleware.error_handlers import ExternalServiceError


logger = logging.getLogger(__name__)

# Mux signs ``{timestamp}.{body}``; older deliveries are rejected
SIGNATURE_TOLERANCE_SECONDS = 300


def parse_mux_signature(header: str) -> tuple[str, list[str]]:
    """Split ``t=<ts>,v1=<hex>[,v1=<hex>]`` into the timestamp and v1 digests."""
    timestamp = ""
    digests: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            digests.append(value)
    return timestamp, digests


def verify_mux_signature(
    body: bytes,
    header: str,
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Raise ``WebhookVerificationError`` unless ``header`` signs ``body`` with ``secret``."""
    timestamp, digests = parse_mux_signature(header)
    if not timestamp or not digests:
        raise WebhookVerificationError("Malformed mux-signature header")

    try:
        signed_at = int(timestamp)
    except ValueError as e:
        raise WebhookVerificationError("Malformed mux-signature timestamp") from e

    current = time.time() if now is None else now
    if abs(current - signed_at) > tolerance:
        raise WebhookVerificationError("Mux signature timestamp outside tolerance")

    payload = f"{timestamp}.".encode() + body
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, digest) for digest in digests):
        raise WebhookVerificationError("Invalid Mux signature")


class MuxClient:
    """Minimal Mux Video client: direct uploads and asset lookups."""

    def __init__(
        self,
        token_id: str | None = None,
        token_secret: str | None = None,
        base_url: str | None = None,
        timeout: float = 15.0,
    ) -> None:
        settings = get_settings()
        self._token_id = token_id if token_id is not None else settings.MUX_TOKEN_ID
        self._token_secret = (
            token_secret if token_secret is not None else settings.MUX_TOKEN_SECRET.get_secret_value()
        )
        self._base_url = (base_url or settings.MUX_API_URL).rstrip("/")
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._token_id and self._token_secret)

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.configured:
            raise ExternalServiceError("Mux", "MUX_TOKEN_ID and MUX_TOKEN_SECRET are not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, auth=(self._token_id, self._token_secret), timeout=self._timeout
            ) as client:
                response = await client.request(method, path, json=json)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError("Mux", f"{method} {path} failed: {e}") from e

        return payload.get("data") or {}

    async def create_direct_upload(self, passthrough: str) -> dict[str, Any]:
        """Create a public-playback direct upload tagged with ``passthrough``."""
        return await self._request(
            "POST",
            "/video/v1/uploads",
            json={
                "new_asset_settings": {"playback_policy": ["public"], "passthrough": passthrough},
                "cors_origin": "*",
            },
        )

    async def get_upload(self, upload_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/video/v1/uploads/{upload_id}")

    async def get_asset(self, asset_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/video/v1/assets/{asset_id}")

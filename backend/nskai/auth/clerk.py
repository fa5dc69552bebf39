"""Clerk Backend API client (user metadata mirror)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from nskai.config.settings import get_settings
from nskai.middleware.error_handlers import ExternalServiceError


logger = logging.getLogger(__name__)


class ClerkClient:
    """Thin async wrapper over the Clerk Backend API endpoints we use."""

    def __init__(self, secret_key: str | None = None, base_url: str | None = None, timeout: float = 10.0) -> None:
        settings = get_settings()
        self._secret_key = secret_key if secret_key is not None else settings.CLERK_SECRET_KEY.get_secret_value()
        self._base_url = (base_url or settings.CLERK_API_URL).rstrip("/")
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }

    async def update_public_metadata(self, clerk_id: str, public_metadata: dict[str, Any]) -> None:
        """Merge ``public_metadata`` into the Clerk user (PATCH semantics)."""
        if not self.configured:
            logger.debug("CLERK_SECRET_KEY not set; skipping metadata sync for %s", clerk_id)
            return

        url = f"{self._base_url}/users/{clerk_id}/metadata"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.patch(url, headers=self._headers(), json={"public_metadata": public_metadata})
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError("Clerk", f"metadata update failed: {e}") from e

        logger.info("Synced Clerk metadata", extra={"clerk_id": clerk_id, "keys": sorted(public_metadata)})

    async def get_user(self, clerk_id: str) -> dict[str, Any]:
        """Fetch a Clerk user record."""
        if not self.configured:
            raise ExternalServiceError("Clerk", "CLERK_SECRET_KEY is not configured")

        url = f"{self._base_url}/users/{clerk_id}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, headers=self._headers())
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError("Clerk", f"user lookup failed: {e}") from e

        if not isinstance(data, dict):
            raise ExternalServiceError("Clerk", "unexpected user payload")
        return data


def primary_email(clerk_user: dict[str, Any]) -> str | None:
    """Pick the primary (or first) email address from a Clerk user payload."""
    addresses = clerk_user.get("email_addresses") or []
    primary_id = clerk_user.get("primary_email_address_id")
    for address in addresses:
        if address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None

"""Paystack API client and webhook signature verification."""

import hashlib
import hmac
import logging
from typing import Any

import httpx

from nskai.config.settings import get_settings
from nskai.exceptions import WebhookVerificationError
from nskai.middleware.error_handlers import ExternalServiceError


logger = logging.getLogger(__name__)


def verify_paystack_signature(body: bytes, signature: str | None, secret: str | None = None) -> None:
    """Check ``x-paystack-signature``: hex HMAC-SHA512 of the raw body keyed by the secret key."""
    secret = secret if secret is not None else get_settings().PAYSTACK_SECRET_KEY.get_secret_value()
    if not secret:
        raise WebhookVerificationError("PAYSTACK_SECRET_KEY is not configured")
    if not signature:
        raise WebhookVerificationError("Missing x-paystack-signature header")

    expected = hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()
    if not hmac.compare_digest(expected, signature):
        raise WebhookVerificationError("Invalid Paystack signature")


class PaystackClient:
    """Verifies transactions against the Paystack API."""

    def __init__(self, secret_key: str | None = None, base_url: str | None = None, timeout: float = 15.0) -> None:
        settings = get_settings()
        self._secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY.get_secret_value()
        self._base_url = (base_url or settings.PAYSTACK_API_URL).rstrip("/")
        self._timeout = timeout

    async def verify_transaction(self, reference: str) -> dict[str, Any] | None:
        """
        Look up a transaction by reference.

        Returns
        -------
        dict | None
            The transaction ``data`` object when Paystack reports it as
            successful, otherwise ``None``

        Raises
        ------
        ExternalServiceError
            If Paystack is unreachable or not configured
        """
        if not self._secret_key:
            raise ExternalServiceError("Paystack", "PAYSTACK_SECRET_KEY is not configured")

        url = f"{self._base_url}/transaction/verify/{reference}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, headers={"Authorization": f"Bearer {self._secret_key}"})
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError("Paystack", f"verification failed: {e}") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not payload.get("status") or not isinstance(data, dict) or data.get("status") != "success":
            logger.info("Paystack reports transaction %s as not successful", reference)
            return None
        return data

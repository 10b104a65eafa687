"""Paystack API client"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from proficiency_exam.errors import ExternalServiceError

logger = logging.getLogger(__name__)

# Rejections about our own credentials or quota, not about the payment
PROVIDER_SIDE_STATUSES = {401, 403, 429}


class PaystackClient:
    """Thin async wrapper over the Paystack REST API.

    Other 4xx responses are returned to the caller, since Paystack reports
    business failures (unknown reference, declined charge) as
    ``{"status": false}`` bodies. Transport errors, 5xx responses and
    rejections of the account itself (bad key, no permission, rate limit)
    raise ExternalServiceError.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise ExternalServiceError("Payment system not configured")
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def is_test_mode(self) -> bool:
        """Check if we're in test mode based on secret key"""
        return self.secret_key.startswith("sk_test_")

    async def _request(
        self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Make HTTP request to Paystack API"""
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

        if self.is_test_mode():
            logger.info(f"Paystack API call in TEST mode: {method} {endpoint}")

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            try:
                response = await client.request(
                    method, endpoint, json=data, headers=headers
                )
            except httpx.RequestError as e:
                logger.error(f"Paystack request failed: {e}")
                raise ExternalServiceError(f"Payment provider unreachable: {e}")

        logger.info(f"Paystack API response status: {response.status_code}")

        if response.status_code in PROVIDER_SIDE_STATUSES:
            logger.error(
                f"Paystack rejected the request: {response.status_code} - {response.text[:200]}"
            )
            raise ExternalServiceError(
                f"Payment provider refused the request (HTTP {response.status_code})"
            )

        if response.status_code >= 500:
            logger.error(
                f"Paystack API error: {response.status_code} - {response.text}"
            )
            raise ExternalServiceError(
                f"Payment provider error (HTTP {response.status_code})"
            )

        try:
            return response.json()
        except ValueError:
            logger.error(f"Paystack returned non-JSON body: {response.text[:200]}")
            raise ExternalServiceError("Payment provider returned an invalid response")

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Fetch the full verification response for a transaction reference"""
        return await self._request("GET", f"/transaction/verify/{reference}")

    async def initialize_transaction(
        self,
        email: str,
        amount: int,
        currency: str,
        reference: str,
        callback_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Initialize a card/bank checkout.

        Args:
            amount: Amount in minor units (cents, kobo)

        Returns:
            Paystack ``data`` object with ``authorization_url`` and ``access_code``

        Raises:
            ExternalServiceError: If Paystack rejects the initialization
        """
        payload = {
            "email": email,
            "amount": amount,
            "currency": currency,
            "reference": reference,
            "metadata": metadata or {},
        }
        if callback_url:
            payload["callback_url"] = callback_url

        response = await self._request("POST", "/transaction/initialize", payload)
        if not response.get("status"):
            raise ExternalServiceError(
                response.get("message", "Payment initialization failed")
            )
        return response.get("data", {})

    async def charge_mobile_money(
        self,
        email: str,
        amount: int,
        phone: str,
        reference: str,
        metadata: Optional[Dict[str, Any]] = None,
        provider: str = "mpesa",
        currency: str = "KES",
    ) -> Dict[str, Any]:
        """
        Start an asynchronous mobile money charge (the payer confirms on their phone).

        Returns:
            Paystack ``data`` object; ``display_text`` holds the prompt shown to the payer

        Raises:
            ExternalServiceError: If Paystack rejects the charge
        """
        payload = {
            "email": email,
            "amount": amount,
            "currency": currency,
            "reference": reference,
            "mobile_money": {"phone": phone, "provider": provider},
            "metadata": metadata or {},
        }
        response = await self._request("POST", "/charge", payload)
        if not response.get("status") or not response.get("data"):
            raise ExternalServiceError(
                response.get("message", "Failed to initialize mobile money payment")
            )
        return response.get("data", {})


def compute_webhook_signature(raw_body: bytes, secret_key: str) -> str:
    """HMAC-SHA512 hex digest Paystack sends in ``x-paystack-signature``"""
    return hmac.new(secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_webhook_signature(
    raw_body: bytes, signature: Optional[str], secret_key: Optional[str]
) -> bool:
    """Constant-time check of a webhook signature over the unparsed request body"""
    if not signature or not secret_key:
        return False
    expected = compute_webhook_signature(raw_body, secret_key)
    return hmac.compare_digest(expected, signature)

"""Payment verification: provider responses normalized into one result type.

The identity resolver only ever sees ``PaymentVerification``; nothing outside
this module knows how Paystack spells its statuses.
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from proficiency_exam.backends.paystack_client import PaystackClient

logger = logging.getLogger(__name__)


class VerificationStatus(str, enum.Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"


@dataclass
class PaymentVerification:
    reference: str
    status: VerificationStatus
    amount: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None
    # False when the provider could not confirm the reference at all
    provider_confirmed: bool = True


class PaymentVerifier(ABC):
    """Looks up a payment by provider reference"""

    @abstractmethod
    async def verify(self, reference: str) -> PaymentVerification:
        """
        Raises:
            ExternalServiceError: If the provider is unreachable or misconfigured
        """


def normalize_paystack_status(provider_status: Optional[str]) -> VerificationStatus:
    """Map a Paystack transaction status onto success/pending/failed.

    Anything Paystack has not settled yet (``ongoing`` for M-Pesa prompts,
    ``pending``, ``processing``, unknown values) stays pending.
    """
    if provider_status == "success":
        return VerificationStatus.SUCCESS
    if provider_status == "failed":
        return VerificationStatus.FAILED
    return VerificationStatus.PENDING


class PaystackPaymentVerifier(PaymentVerifier):
    def __init__(self, client: PaystackClient):
        self.client = client

    async def verify(self, reference: str) -> PaymentVerification:
        response = await self.client.verify_transaction(reference)

        if not response.get("status"):
            logger.warning(
                f"Paystack could not verify reference {reference}: {response.get('message')}"
            )
            return PaymentVerification(
                reference=reference,
                status=VerificationStatus.FAILED,
                message="Payment verification failed",
                provider_confirmed=False,
            )

        data = response.get("data") or {}
        # Paystack sends metadata as an object, or as an empty string when unset
        metadata = data.get("metadata")
        status = normalize_paystack_status(data.get("status"))
        logger.info(
            f"Paystack verification for {reference}: {data.get('status')} -> {status.value}"
        )

        if status == VerificationStatus.FAILED:
            message = data.get("gateway_response") or "Payment failed. Please try again."
        elif status == VerificationStatus.PENDING:
            message = "Payment is being processed. Please confirm the prompt on your phone."
        else:
            message = None

        return PaymentVerification(
            reference=reference,
            status=status,
            amount=data.get("amount"),
            currency=data.get("currency"),
            metadata=metadata if isinstance(metadata, dict) else {},
            message=message,
        )


class SandboxPaymentVerifier(PaymentVerifier):
    """TEST/SANDBOX ONLY: treats unconfirmable ``EP_`` card references as paid.

    Wraps a real verifier. When the provider cannot confirm a reference at
    all, a card reference (``EP_`` prefix, not mobile money) is reported as a
    successful payment of the given amount. Never enabled in production; see
    ``build_payment_verifier``.
    """

    def __init__(self, inner: PaymentVerifier, amount: int, currency: str):
        self.inner = inner
        self.amount = amount
        self.currency = currency

    async def verify(self, reference: str) -> PaymentVerification:
        result = await self.inner.verify(reference)
        if (
            not result.provider_confirmed
            and reference.startswith("EP_")
            and "MPESA" not in reference
        ):
            logger.warning(
                f"SANDBOX MODE: accepting unverified payment reference {reference}"
            )
            return PaymentVerification(
                reference=reference,
                status=VerificationStatus.SUCCESS,
                amount=self.amount,
                currency=self.currency,
                message="Sandbox payment accepted",
            )
        return result

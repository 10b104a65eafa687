"""Centralized Paystack client and payment verifier for the application"""

import logging
import threading

from fastapi import Depends

from proficiency_exam.backends.payment_verifier import (
    PaymentVerifier,
    PaystackPaymentVerifier,
    SandboxPaymentVerifier,
)
from proficiency_exam.backends.paystack_client import PaystackClient
from proficiency_exam.config import config
from proficiency_exam.services.payment_service import EXPECTED_AMOUNTS

_paystack_lock = threading.Lock()
_paystack_client = None

logger = logging.getLogger(__name__)


def get_paystack_client() -> PaystackClient:
    """Get the singleton Paystack client instance"""
    global _paystack_client
    if _paystack_client is None:
        with _paystack_lock:
            if _paystack_client is None:
                _paystack_client = PaystackClient(
                    config["paystack_secret_key"], base_url=config["paystack_base_url"]
                )
                logger.info("Initialized singleton Paystack client")

    return _paystack_client


def check_sandbox_allowed(sandbox_mode: bool, environment: str) -> None:
    """Refuse to run with the sandbox verifier in production"""
    if sandbox_mode and environment == "production":
        raise RuntimeError(
            "PAYMENT_SANDBOX_MODE must not be enabled when ENVIRONMENT=production."
        )


def build_payment_verifier(
    client: PaystackClient, sandbox_mode: bool, environment: str
) -> PaymentVerifier:
    check_sandbox_allowed(sandbox_mode, environment)
    verifier = PaystackPaymentVerifier(client)
    if sandbox_mode:
        logger.warning("Payment sandbox mode enabled: unverifiable EP_ references are accepted")
        return SandboxPaymentVerifier(verifier, EXPECTED_AMOUNTS["USD"], "USD")
    return verifier


def get_payment_verifier(
    client: PaystackClient = Depends(get_paystack_client),
) -> PaymentVerifier:
    return build_payment_verifier(
        client, config["payment_sandbox_mode"], config["environment"]
    )

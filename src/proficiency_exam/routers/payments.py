"""Payment endpoints: checkout initialization, verification and the Paystack webhook"""

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlmodel import Session

from proficiency_exam.auth.dependencies import (
    get_clock,
    get_session_token,
    get_test_session_service,
)
from proficiency_exam.backends.payment_verifier import PaymentVerifier
from proficiency_exam.backends.paystack_client import (
    PaystackClient,
    verify_webhook_signature,
)
from proficiency_exam.config import config
from proficiency_exam.errors import Conflict, ValidationError
from proficiency_exam.models.database import get_db
from proficiency_exam.models.payment import PaymentRecordStatus
from proficiency_exam.models.views import CamelModel, user_json
from proficiency_exam.services.identity_resolver import (
    IdentityResolver,
    PromotionStatus,
)
from proficiency_exam.services.payment_service import (
    EXPECTED_AMOUNTS,
    PaymentService,
    build_reference,
)
from proficiency_exam.services.paystack_service import (
    get_payment_verifier,
    get_paystack_client,
)
from proficiency_exam.services.test_session_service import TestSessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


class InitializePaymentRequest(CamelModel):
    session_id: uuid.UUID
    email: str
    currency: str = "USD"
    callback_url: Optional[str] = None


class MpesaPaymentRequest(CamelModel):
    session_id: uuid.UUID
    email: str
    phone: str


class VerifyPaymentRequest(CamelModel):
    reference: str
    temp_token: Optional[str] = None


def _timestamp_ms(clock) -> int:
    return int(clock().timestamp() * 1000)


def _payable_session(sessions: TestSessionService, session_id, session_token):
    session = sessions.authorize(session_id, session_token)
    if session.is_paid:
        raise Conflict("Session is already paid", status=session.payment_status.value)
    return session


@router.post("/initialize")
async def initialize_payment(
    request: InitializePaymentRequest,
    session_token: Optional[str] = Depends(get_session_token),
    sessions: TestSessionService = Depends(get_test_session_service),
    client: PaystackClient = Depends(get_paystack_client),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Start a card/bank checkout for the session's exam fee"""
    currency = request.currency.upper()
    amount = EXPECTED_AMOUNTS.get(currency)
    if amount is None:
        raise ValidationError(f"Unsupported currency: {request.currency}")

    session = _payable_session(sessions, request.session_id, session_token)
    reference = build_reference(session.id, _timestamp_ms(clock))

    data = await client.initialize_transaction(
        email=request.email,
        amount=amount,
        currency=currency,
        reference=reference,
        callback_url=request.callback_url or f"{config['app_base_url']}/payment/callback",
        metadata={"sessionId": str(session.id)},
    )
    PaymentService(db, clock).upsert(
        session_id=session.id,
        reference=reference,
        amount=amount,
        currency=currency,
        status=PaymentRecordStatus.PENDING,
    )

    return {
        "success": True,
        "reference": reference,
        "authorizationUrl": data.get("authorization_url"),
        "accessCode": data.get("access_code"),
    }


@router.post("/initialize-mpesa")
async def initialize_mpesa_payment(
    request: MpesaPaymentRequest,
    session_token: Optional[str] = Depends(get_session_token),
    sessions: TestSessionService = Depends(get_test_session_service),
    client: PaystackClient = Depends(get_paystack_client),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Send an M-Pesa payment prompt to the candidate's phone"""
    session = _payable_session(sessions, request.session_id, session_token)
    reference = build_reference(session.id, _timestamp_ms(clock), mpesa=True)
    amount = EXPECTED_AMOUNTS["KES"]

    data = await client.charge_mobile_money(
        email=request.email,
        amount=amount,
        phone=request.phone,
        reference=reference,
        metadata={"sessionId": str(session.id)},
    )
    PaymentService(db, clock).upsert(
        session_id=session.id,
        reference=reference,
        amount=amount,
        currency="KES",
        status=PaymentRecordStatus.PENDING,
    )

    return {
        "success": True,
        "reference": reference,
        "status": data.get("status", "pending"),
        "message": data.get("display_text")
        or "Please check your phone and enter your M-Pesa PIN to complete payment",
    }


@router.post("/verify")
async def verify_payment(
    request: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    verifier: PaymentVerifier = Depends(get_payment_verifier),
    clock=Depends(get_clock),
):
    """
    Confirm a payment and turn the temporary registration into an account.

    A pending payment returns ``success: false`` with ``status: pending`` so
    the client can poll again; the registration is kept until it expires.
    """
    result = await IdentityResolver(db, verifier, clock).resolve(
        request.reference, request.temp_token
    )

    if result.status == PromotionStatus.PENDING:
        return {"success": False, "status": "pending", "message": result.message}

    return {
        "success": True,
        "user": user_json(result.user),
        "authToken": result.auth_token,
        "message": "Payment verified successfully",
    }


@router.post("/webhook")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Paystack event notifications; the signature covers the raw body"""
    raw_body = await request.body()
    if not verify_webhook_signature(
        raw_body, x_paystack_signature, config["paystack_secret_key"]
    ):
        logger.warning("Rejected webhook with invalid signature")
        raise ValidationError("Invalid webhook signature")

    try:
        event = json.loads(raw_body)
    except ValueError:
        raise ValidationError("Webhook body is not valid JSON")

    if not isinstance(event, dict):
        raise ValidationError("Webhook body must be a JSON object")

    event_type = event.get("event")
    data = event.get("data") or {}
    logger.info(f"Received Paystack webhook: {event_type}")

    if event_type == "charge.success" and data.get("status") == "success":
        PaymentService(db, clock).apply_charge_success(
            reference=data.get("reference", ""),
            amount=data.get("amount"),
            currency=data.get("currency"),
            metadata=data.get("metadata") or {},
        )

    return {"message": "Webhook processed"}

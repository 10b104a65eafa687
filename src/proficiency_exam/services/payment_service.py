"""Payment Service - payment records, amount policy and reference parsing"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from proficiency_exam.models.payment import Payment, PaymentRecordStatus
from proficiency_exam.models.test_session import PaymentStatus, TestSession
from proficiency_exam.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

# Exam fee in minor units: $16, NGN 16,000, KES 1,900
EXPECTED_AMOUNTS = {
    "USD": 1600,
    "NGN": 1600000,
    "KES": 190000,
}
AMOUNT_TOLERANCE = 0.05

REFERENCE_PREFIX = "EP"
MPESA_REFERENCE_PREFIX = "EP_MPESA"


def validate_amount(amount: Optional[int], currency: Optional[str]) -> bool:
    """True when ``amount`` is within 5% of the fee for ``currency``"""
    if amount is None or not currency:
        return False
    expected = EXPECTED_AMOUNTS.get(currency.upper())
    if expected is None:
        return False
    return abs(amount - expected) <= expected * AMOUNT_TOLERANCE


def build_reference(session_id: uuid.UUID, timestamp_ms: int, mpesa: bool = False) -> str:
    """``EP_<sessionId>_<ms>`` for card payments, ``EP_MPESA_<sessionId>_<ms>`` for M-Pesa"""
    prefix = MPESA_REFERENCE_PREFIX if mpesa else REFERENCE_PREFIX
    return f"{prefix}_{session_id}_{timestamp_ms}"


def parse_reference_session_id(reference: str) -> Optional[uuid.UUID]:
    """
    Extract the session id embedded in a payment reference.

    The id is the segment right before the trailing timestamp, so both
    ``EP_<id>_<ts>`` and ``EP_MPESA_<id>_<ts>`` resolve. A two-part
    reference (``EP_<id>``) uses its second segment.
    """
    if not reference or "_" not in reference:
        return None
    parts = reference.split("_")
    candidate = parts[1] if len(parts) == 2 else parts[-2]
    try:
        return uuid.UUID(candidate)
    except ValueError:
        return None


def resolve_session_id(
    metadata: Optional[Dict[str, Any]], reference: str
) -> Optional[uuid.UUID]:
    """Session id from provider metadata (preferred), else parsed from the reference"""
    # Paystack sends metadata as an object, or as an empty string when unset
    raw = metadata.get("sessionId") if isinstance(metadata, dict) else None
    if raw:
        try:
            return uuid.UUID(str(raw))
        except ValueError:
            logger.warning(f"Ignoring malformed sessionId in payment metadata: {raw}")
    return parse_reference_session_id(reference)


class PaymentService:
    """Service for payment records"""

    def __init__(self, db_session: Session, clock: Clock = utcnow):
        self.db = db_session
        self.clock = clock

    def get_by_reference(self, reference: str) -> Optional[Payment]:
        statement = select(Payment).where(Payment.provider_reference == reference)
        return self.db.exec(statement).first()

    def upsert(
        self,
        session_id: uuid.UUID,
        reference: str,
        amount: int,
        currency: Optional[str],
        status: PaymentRecordStatus,
        commit: bool = True,
    ) -> Payment:
        """
        Create or update the payment for a provider reference.

        Repeating the call with the same reference updates the one existing
        record, so retries and webhook redeliveries never duplicate payments.

        Args:
            commit: When False the change is only flushed into the caller's
                open transaction
        """
        now = self.clock()
        payment = self.get_by_reference(reference)
        if payment is None:
            payment = Payment(
                session_id=session_id,
                provider_reference=reference,
                amount=amount,
                currency=currency,
                status=status,
                created_at=now,
                updated_at=now,
            )
            try:
                # Nested so a lost insert race leaves the caller's transaction intact
                with self.db.begin_nested():
                    self.db.add(payment)
            except IntegrityError:
                logger.info(f"Payment {reference} inserted concurrently, updating")
                payment = self.get_by_reference(reference)
                if payment is None:
                    raise
                self._apply(payment, amount, currency, status, now)
        else:
            self._apply(payment, amount, currency, status, now)
        self.db.add(payment)

        if commit:
            self.db.commit()
            self.db.refresh(payment)
        else:
            self.db.flush()

        logger.info(f"Payment {reference} recorded as {status.value}")
        return payment

    @staticmethod
    def _apply(payment, amount, currency, status, now) -> None:
        payment.status = status
        payment.amount = amount
        if currency:
            payment.currency = currency
        payment.updated_at = now

    def apply_charge_success(
        self,
        reference: str,
        amount: Optional[int],
        currency: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[TestSession]:
        """
        Record a provider-confirmed charge for its session.

        Marks the payment successful and the session's payment completed.
        The session status and ownership are left alone; creating the user
        stays with the payment verification flow.

        Returns:
            The updated session, or None when the charge was ignored
            (amount outside policy, no resolvable session)
        """
        if not validate_amount(amount, currency):
            logger.warning(
                f"Ignoring charge {reference}: amount {amount} {currency} outside policy"
            )
            return None

        session_id = resolve_session_id(metadata, reference)
        session = self.db.get(TestSession, session_id) if session_id else None
        if not session:
            logger.warning(f"Ignoring charge {reference}: no matching test session")
            return None

        self.upsert(
            session_id=session.id,
            reference=reference,
            amount=amount,
            currency=currency,
            status=PaymentRecordStatus.SUCCESS,
            commit=False,
        )
        session.payment_status = PaymentStatus.COMPLETED
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        logger.info(f"Charge {reference} confirmed for session {session.id}")
        return session

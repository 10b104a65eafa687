"""Identity resolver - turns a paid temporary registration into a durable user"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session

from proficiency_exam.backends.payment_verifier import (
    PaymentVerifier,
    VerificationStatus,
)
from proficiency_exam.errors import (
    DuplicateEmail,
    InvalidPaymentReference,
    PaymentAmountInvalid,
    PaymentFailed,
    RegistrationExpiredOrInvalid,
    ValidationError,
)
from proficiency_exam.models.payment import PaymentRecordStatus
from proficiency_exam.models.temp_registration import TemporaryRegistration
from proficiency_exam.models.test_session import (
    PaymentStatus,
    SessionStatus,
    TestSession,
)
from proficiency_exam.models.user import User
from proficiency_exam.services.auth_token_service import AuthTokenService
from proficiency_exam.services.payment_service import (
    PaymentService,
    resolve_session_id,
    validate_amount,
)
from proficiency_exam.services.temp_registration_service import (
    TempRegistrationService,
)
from proficiency_exam.services.user_service import UserService
from proficiency_exam.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


class PromotionStatus(str, enum.Enum):
    SUCCESS = "success"
    PENDING = "pending"


@dataclass
class PromotionResult:
    status: PromotionStatus
    user: Optional[User] = None
    auth_token: Optional[str] = None
    message: Optional[str] = None


class IdentityResolver:
    """
    Promotes a temporary registration once its payment is confirmed.

    The temporary registration is claimed (deleted) inside the promotion
    transaction and the claim's row count decides the winner, so concurrent
    verifications of the same registration create at most one user.
    """

    def __init__(
        self, db_session: Session, verifier: PaymentVerifier, clock: Clock = utcnow
    ):
        self.db = db_session
        self.verifier = verifier
        self.clock = clock
        self.temp_registrations = TempRegistrationService(db_session, clock)

    async def resolve(
        self, payment_reference: str, temp_token: Optional[str]
    ) -> PromotionResult:
        """
        Verify a payment and promote the matching temporary registration.

        Args:
            payment_reference: Provider reference of the payment
            temp_token: Token returned by registration

        Returns:
            PromotionResult: ``success`` with the new user and a 24h auth
            token, or ``pending`` (registration kept) while the provider has
            not settled the payment

        Raises:
            ValidationError: If no payment reference was given
            RegistrationExpiredOrInvalid: Unknown, expired or already claimed registration
            PaymentFailed: Provider reports the payment failed
            PaymentAmountInvalid: Amount or currency outside policy
            InvalidPaymentReference: No usable, unowned session behind the payment
            DuplicateEmail: The email was taken while the payment was processed
            ExternalServiceError: Provider unreachable (registration kept for retry)
        """
        if not payment_reference:
            raise ValidationError("Payment reference is required")
        if not temp_token:
            raise RegistrationExpiredOrInvalid()

        registration = self.temp_registrations.get(temp_token)
        if not registration:
            raise RegistrationExpiredOrInvalid()

        # Snapshot before awaiting; the row may be claimed meanwhile
        signup = {
            "first_name": registration.first_name,
            "last_name": registration.last_name,
            "email": registration.email,
            "phone": registration.phone,
            "password_hash": registration.password_hash,
        }

        verification = await self.verifier.verify(payment_reference)

        if verification.status == VerificationStatus.PENDING:
            logger.info(f"Payment {payment_reference} still pending")
            return PromotionResult(
                status=PromotionStatus.PENDING,
                message=verification.message
                or "Payment is being processed. Please wait.",
            )

        if verification.status == VerificationStatus.FAILED:
            self.temp_registrations.delete(temp_token)
            logger.warning(f"Payment {payment_reference} failed")
            raise PaymentFailed(verification.message)

        if not self._claim(temp_token):
            raise RegistrationExpiredOrInvalid()

        # From here on the claim is part of the open transaction; committing
        # without a promotion is how a failed attempt deletes the registration.
        if not validate_amount(verification.amount, verification.currency):
            self.db.commit()
            logger.warning(
                f"Payment {payment_reference} has invalid amount "
                f"{verification.amount} {verification.currency}"
            )
            raise PaymentAmountInvalid()

        session_id = resolve_session_id(verification.metadata, payment_reference)
        session = self.db.get(TestSession, session_id) if session_id else None
        if not session or session.user_id is not None:
            self.db.commit()
            logger.warning(f"Payment {payment_reference} has no claimable session")
            raise InvalidPaymentReference()

        try:
            user = UserService(self.db).create_user(commit=False, **signup)
        except DuplicateEmail:
            # create_user rolled the claim back
            self.temp_registrations.delete(temp_token)
            raise

        try:
            auth_token = AuthTokenService(self.db, self.clock).issue(
                user.id, commit=False
            )
            token_value = auth_token.token
            PaymentService(self.db, self.clock).upsert(
                session_id=session.id,
                reference=payment_reference,
                amount=verification.amount,
                currency=verification.currency,
                status=PaymentRecordStatus.SUCCESS,
                commit=False,
            )
            session.user_id = user.id
            session.payment_status = PaymentStatus.COMPLETED
            session.status = SessionStatus.PENDING
            self.db.add(session)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(user)
        logger.info(f"Promoted registration to user {user.id} for session {session.id}")
        return PromotionResult(
            status=PromotionStatus.SUCCESS, user=user, auth_token=token_value
        )

    def _claim(self, temp_token: str) -> bool:
        """Delete the live registration in the current transaction; False if someone else got it"""
        result = self.db.execute(
            delete(TemporaryRegistration)
            .where(TemporaryRegistration.token == temp_token)
            .where(TemporaryRegistration.expires_at > self.clock())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

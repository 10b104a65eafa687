"""Temporary registration store for signups awaiting payment"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from proficiency_exam.auth.token_issuer import issue_token
from proficiency_exam.errors import DuplicateEmail
from proficiency_exam.models.temp_registration import TemporaryRegistration
from proficiency_exam.services.user_service import UserService, normalize_email
from proficiency_exam.utils.time_utils import Clock, is_expired, utcnow

logger = logging.getLogger(__name__)

TEMP_REGISTRATION_TTL = timedelta(hours=1)


class TempRegistrationService:
    """Service for temporary registrations.

    Records are single use: promotion, payment failure and expiry all delete
    them. Expiry is enforced on every read, independent of the sweeper.
    """

    def __init__(self, db_session: Session, clock: Clock = utcnow):
        self.db = db_session
        self.clock = clock

    def create(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password_hash: str,
    ) -> TemporaryRegistration:
        """
        Hold signup data until payment completes.

        Args:
            first_name: Candidate's first name
            last_name: Candidate's last name
            email: Candidate's email address
            phone: Candidate's phone number
            password_hash: bcrypt hash of the chosen password

        Returns:
            TemporaryRegistration carrying the new token and its expiry

        Raises:
            DuplicateEmail: If a durable user already owns the email
        """
        if UserService(self.db).get_user_by_email(email):
            raise DuplicateEmail()

        now = self.clock()
        registration = TemporaryRegistration(
            token=issue_token(),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=normalize_email(email),
            phone=phone.strip(),
            password_hash=password_hash,
            expires_at=now + TEMP_REGISTRATION_TTL,
            created_at=now,
        )
        self.db.add(registration)
        self.db.commit()
        self.db.refresh(registration)

        logger.info(f"Created temporary registration {registration.id}")
        return registration

    def get(self, token: str) -> Optional[TemporaryRegistration]:
        """Get a live registration by token; expired ones are deleted and reported as missing"""
        stmt = select(TemporaryRegistration).where(TemporaryRegistration.token == token)
        registration = self.db.exec(stmt).first()
        if not registration:
            return None

        if is_expired(registration.expires_at, self.clock()):
            logger.info(f"Temporary registration {registration.id} expired, deleting")
            self.delete(token)
            return None

        return registration

    def delete(self, token: str) -> None:
        """Delete a registration by token. No-op when it is already gone."""
        self.db.execute(
            delete(TemporaryRegistration).where(TemporaryRegistration.token == token)
        )
        self.db.commit()

    def sweep_expired(self) -> int:
        """Delete every expired registration and return how many were removed"""
        result = self.db.execute(
            delete(TemporaryRegistration)
            .where(TemporaryRegistration.expires_at <= self.clock())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount:
            logger.info(f"Swept {result.rowcount} expired temporary registrations")
        return result.rowcount

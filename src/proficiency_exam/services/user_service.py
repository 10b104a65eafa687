"""User Service - Handles user database operations"""

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from proficiency_exam.auth.passwords import verify_password
from proficiency_exam.errors import DuplicateEmail, InvalidCredentials
from proficiency_exam.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Service for handling user operations"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password_hash: str,
        commit: bool = True,
    ) -> User:
        """
        Create a new user in the database

        Args:
            first_name: User's first name
            last_name: User's last name
            email: User's email address (must be unique)
            phone: User's phone number
            password_hash: bcrypt hash of the user's password
            commit: When False the user is only flushed, leaving the caller's
                transaction open

        Returns:
            Created User object

        Raises:
            DuplicateEmail: If a user with this email already exists
        """
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=normalize_email(email),
            phone=phone,
            password_hash=password_hash,
        )

        try:
            self.db.add(user)
            if commit:
                self.db.commit()
                self.db.refresh(user)
            else:
                self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Duplicate email on user creation: {e.orig}")
            raise DuplicateEmail()

        logger.info(f"User created successfully: {user.id}")
        return user

    def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """
        Get a user by their ID

        Args:
            user_id: UUID of the user to retrieve

        Returns:
            User object if found, None otherwise
        """
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Get a user by their email address

        Args:
            email: Email address to search for

        Returns:
            User object if found, None otherwise
        """
        statement = select(User).where(User.email == normalize_email(email))
        return self.db.exec(statement).first()

    def authenticate(self, email: str, password: str) -> User:
        """
        Check a user's credentials

        Raises:
            InvalidCredentials: Unknown email or wrong password (same error
                for both so emails cannot be enumerated)
        """
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentials()
        return user

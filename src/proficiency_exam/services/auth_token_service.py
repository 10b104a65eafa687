"""Auth token service - long-lived account tokens stored in the database"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session

from proficiency_exam.auth.token_issuer import issue_token
from proficiency_exam.models.auth_token import AuthToken
from proficiency_exam.utils.time_utils import Clock, is_expired, utcnow

logger = logging.getLogger(__name__)

AUTH_TOKEN_TTL = timedelta(hours=24)


class AuthTokenService:
    """Issues, resolves and revokes auth tokens"""

    def __init__(self, db_session: Session, clock: Clock = utcnow):
        self.db = db_session
        self.clock = clock

    def issue(self, user_id: uuid.UUID, commit: bool = True) -> AuthToken:
        """
        Issue a 24-hour auth token for a user.

        Args:
            user_id: Owner of the token
            commit: When False the token joins the caller's open transaction

        Returns:
            The persisted AuthToken
        """
        now = self.clock()
        auth_token = AuthToken(
            token=issue_token(),
            user_id=user_id,
            issued_at=now,
            expires_at=now + AUTH_TOKEN_TTL,
        )
        self.db.add(auth_token)
        if commit:
            self.db.commit()
            self.db.refresh(auth_token)
        else:
            self.db.flush()
        logger.info(f"Issued auth token for user {user_id}")
        return auth_token

    def resolve(self, token: Optional[str]) -> Optional[uuid.UUID]:
        """
        Resolve a token to its user id.

        Returns:
            The user id, or None for missing, unknown and expired tokens alike
        """
        if not token:
            return None

        auth_token = self.db.get(AuthToken, token)
        if not auth_token:
            return None

        if is_expired(auth_token.expires_at, self.clock()):
            self.revoke(token)
            return None

        return auth_token.user_id

    def revoke(self, token: str) -> None:
        """Delete a token (logout). No-op for unknown tokens."""
        self.db.execute(delete(AuthToken).where(AuthToken.token == token))
        self.db.commit()

    def sweep_expired(self) -> int:
        """Delete expired tokens and return how many were removed"""
        result = self.db.execute(
            delete(AuthToken)
            .where(AuthToken.expires_at <= self.clock())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount:
            logger.info(f"Swept {result.rowcount} expired auth tokens")
        return result.rowcount

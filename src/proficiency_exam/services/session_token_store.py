import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import redis

from proficiency_exam.auth.token_issuer import issue_token
from proficiency_exam.utils.time_utils import Clock, ensure_utc, is_expired, utcnow

logger = logging.getLogger(__name__)

SESSION_TOKEN_TTL = timedelta(hours=4)


class SessionTokenStore:
    """
    Manages session-access tokens in Redis with automatic TTL.

    Each token grants access to exactly one test session, with or without a
    user account behind it (pre-payment flow). Provides:
    - Token issuance bound to a session id
    - Redis TTL so abandoned tokens disappear on their own
    - An explicit expiry check on every read, so a token is never honoured
      past its window even if the key outlives its TTL
    """

    def __init__(self, redis_client: redis.Redis, clock: Clock = utcnow):
        """
        Initialize SessionTokenStore with Redis backend.

        Args:
            redis_client: Redis client instance (from dependency injection)
            clock: Source of the current UTC time
        """
        self.redis_client = redis_client
        self.clock = clock
        self.ttl_seconds = int(SESSION_TOKEN_TTL.total_seconds())

    def _token_key(self, token: str) -> str:
        """
        Generate Redis key for a session token.

        Returns:
            Redis key (format: "session_token:{token}")
        """
        return f"session_token:{token}"

    def issue(self, session_id: uuid.UUID) -> str:
        """
        Issue a new token for a session.

        Args:
            session_id: Test session the token unlocks

        Returns:
            The token string

        Raises:
            redis.RedisError: If Redis operation fails
        """
        token = issue_token()
        issued_at = self.clock()
        record = {
            "session_id": str(session_id),
            "issued_at": issued_at.isoformat(),
            "expires_at": (issued_at + SESSION_TOKEN_TTL).isoformat(),
        }
        try:
            self.redis_client.setex(
                self._token_key(token), self.ttl_seconds, json.dumps(record)
            )
        except redis.RedisError as e:
            logger.error(f"Redis error issuing token for session {session_id}: {e}")
            raise

        logger.info(f"Issued session token for session {session_id}")
        return token

    def _get_record(self, token: str) -> Optional[Dict[str, Any]]:
        key = self._token_key(token)
        try:
            record_json = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis error reading session token: {e}")
            raise

        if not record_json:
            return None

        try:
            record = json.loads(record_json)
            expires_at = ensure_utc(datetime.fromisoformat(record["expires_at"]))
        except (json.JSONDecodeError, KeyError, ValueError):
            logger.error("Corrupted session token record, discarding")
            self.revoke(token)
            return None

        if is_expired(expires_at, self.clock()):
            self.revoke(token)
            return None

        return record

    def validate(self, session_id: uuid.UUID, token: Optional[str]) -> bool:
        """
        Check that a token exists, is unexpired and is bound to ``session_id``.

        Unknown, expired and foreign tokens all return False.
        """
        if not token:
            return False
        record = self._get_record(token)
        if not record:
            return False
        return record.get("session_id") == str(session_id)

    def revoke(self, token: str) -> None:
        """
        Delete a token.

        Raises:
            redis.RedisError: If Redis operation fails
        """
        try:
            self.redis_client.delete(self._token_key(token))
        except redis.RedisError as e:
            logger.error(f"Redis error revoking session token: {e}")
            raise

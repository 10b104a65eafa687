"""Request dependencies for FastAPI: token headers, the clock and session services"""

from typing import Optional

from fastapi import Depends, Header
from sqlmodel import Session

from proficiency_exam.models.database import get_db, get_redis
from proficiency_exam.services.session_token_store import SessionTokenStore
from proficiency_exam.services.test_session_service import TestSessionService
from proficiency_exam.utils.time_utils import Clock, utcnow


def get_auth_token(x_auth_token: Optional[str] = Header(None)) -> Optional[str]:
    """Account-level token from the ``x-auth-token`` header"""
    return x_auth_token or None


def get_session_token(x_session_token: Optional[str] = Header(None)) -> Optional[str]:
    """Session-level token from the ``x-session-token`` header"""
    return x_session_token or None


def get_clock() -> Clock:
    return utcnow


def get_test_session_service(
    db: Session = Depends(get_db),
    redis_client=Depends(get_redis),
    clock: Clock = Depends(get_clock),
) -> TestSessionService:
    return TestSessionService(db, SessionTokenStore(redis_client, clock), clock)

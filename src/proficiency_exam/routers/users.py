"""User-scoped endpoints, gated by the x-auth-token header"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from proficiency_exam.auth.dependencies import (
    get_auth_token,
    get_clock,
    get_test_session_service,
)
from proficiency_exam.errors import Forbidden, NotFound, Unauthorized
from proficiency_exam.models.database import get_db
from proficiency_exam.models.views import session_json, user_json
from proficiency_exam.services.auth_token_service import AuthTokenService
from proficiency_exam.services.test_session_service import TestSessionService
from proficiency_exam.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    auth_token: Optional[str] = Depends(get_auth_token),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    token_user_id = AuthTokenService(db, clock).resolve(auth_token)
    if not token_user_id:
        raise Unauthorized("Invalid or expired authentication token")
    if token_user_id != user_id:
        raise Forbidden()

    user = UserService(db).get_user_by_id(user_id)
    if not user:
        raise NotFound("User not found")
    return {"user": user_json(user)}


@router.get("/{user_id}/test-sessions")
async def list_test_sessions(
    user_id: uuid.UUID,
    auth_token: Optional[str] = Depends(get_auth_token),
    sessions: TestSessionService = Depends(get_test_session_service),
):
    owned = sessions.list_for_user(user_id, auth_token)
    return {"sessions": [session_json(s) for s in owned]}


@router.get("/{user_id}/incomplete-sessions")
async def list_incomplete_sessions(
    user_id: uuid.UUID,
    auth_token: Optional[str] = Depends(get_auth_token),
    sessions: TestSessionService = Depends(get_test_session_service),
):
    incomplete = sessions.list_incomplete(user_id, auth_token)
    return {"sessions": [session_json(s) for s in incomplete]}


@router.post("/{user_id}/resume-session/{session_id}")
async def resume_session(
    user_id: uuid.UUID,
    session_id: uuid.UUID,
    auth_token: Optional[str] = Depends(get_auth_token),
    sessions: TestSessionService = Depends(get_test_session_service),
):
    """Issue a fresh session token for one of the user's paid, unfinished sessions"""
    session, session_token = sessions.resume(user_id, auth_token, session_id)
    return {
        "session": session_json(session),
        "sessionToken": session_token,
        "message": "Session resumed",
    }

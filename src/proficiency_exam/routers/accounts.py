"""Account endpoints: signup, login and logout"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator
from sqlmodel import Session

from proficiency_exam.auth.dependencies import get_auth_token, get_clock
from proficiency_exam.auth.passwords import hash_password
from proficiency_exam.errors import Unauthorized
from proficiency_exam.models.database import get_db
from proficiency_exam.models.views import CamelModel, user_json
from proficiency_exam.services.auth_token_service import AuthTokenService
from proficiency_exam.services.temp_registration_service import (
    TempRegistrationService,
)
from proficiency_exam.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Accounts"])

MIN_PASSWORD_LENGTH = 6


class RegisterRequest(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str
    phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return value


class LoginRequest(CamelModel):
    email: str
    password: str


@router.post("/register")
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """
    Hold signup data until the exam fee is paid.

    Returns a temporary token that payment verification exchanges for an
    account. The token is valid for one hour.
    """
    registration = TempRegistrationService(db, clock).create(
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone=request.phone,
        password_hash=hash_password(request.password),
    )
    return {
        "success": True,
        "tempToken": registration.token,
        "expiresAt": registration.expires_at.isoformat(),
        "message": "Registration saved. Complete payment to create your account.",
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    user = UserService(db).authenticate(request.email, request.password)
    auth_token = AuthTokenService(db, clock).issue(user.id)
    logger.info(f"User {user.id} logged in")
    return {"success": True, "user": user_json(user), "authToken": auth_token.token}


@router.post("/logout")
async def logout(
    auth_token: Optional[str] = Depends(get_auth_token),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    if not auth_token:
        raise Unauthorized("Authentication token required")
    AuthTokenService(db, clock).revoke(auth_token)
    return {"success": True, "message": "Logged out"}

"""Database models for the proficiency exam service"""

from proficiency_exam.models.auth_token import AuthToken
from proficiency_exam.models.payment import Payment, PaymentRecordStatus
from proficiency_exam.models.temp_registration import TemporaryRegistration
from proficiency_exam.models.test_answer import (
    AudioRecording,
    Section,
    TestAnswer,
    TextAnswer,
)
from proficiency_exam.models.test_session import (
    PaymentStatus,
    SessionStatus,
    TestSession,
)
from proficiency_exam.models.user import User

__all__ = [
    "AuthToken",
    "AudioRecording",
    "Payment",
    "PaymentRecordStatus",
    "PaymentStatus",
    "Section",
    "SessionStatus",
    "TemporaryRegistration",
    "TestAnswer",
    "TestSession",
    "TextAnswer",
    "User",
]

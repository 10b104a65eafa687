"""Public JSON views of the database models.

Responses use camelCase keys. Password hashes never leave the service, so
``UserView`` simply has no field for them.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from proficiency_exam.models.test_session import PaymentStatus, SessionStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserView(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: str
    created_at: Optional[datetime] = None


class SessionView(CamelModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    status: SessionStatus
    payment_status: PaymentStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_score: Optional[int] = None
    reading_score: Optional[int] = None
    listening_score: Optional[int] = None
    writing_score: Optional[int] = None
    speaking_score: Optional[int] = None
    certificate_id: Optional[str] = None
    created_at: Optional[datetime] = None


class AnswerView(CamelModel):
    id: uuid.UUID
    session_id: uuid.UUID
    section: str
    question_id: str
    answer: Optional[Any] = None
    is_correct: Optional[bool] = None
    score: Optional[int] = None


class ScoresView(CamelModel):
    total: int
    reading: int
    listening: int
    writing: int
    speaking: int


def user_json(user) -> dict:
    return UserView.model_validate(user).to_json()


def session_json(session) -> dict:
    return SessionView.model_validate(session).to_json()


def answer_json(answer) -> dict:
    return AnswerView.model_validate(answer).to_json()

"""Answer recording endpoint"""

import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends

from proficiency_exam.auth.dependencies import get_session_token, get_test_session_service
from proficiency_exam.errors import ValidationError
from proficiency_exam.models.test_answer import parse_answer_value
from proficiency_exam.models.views import CamelModel, answer_json
from proficiency_exam.services.test_session_service import TestSessionService

router = APIRouter(tags=["Test Answers"])


class AnswerRequest(CamelModel):
    session_id: uuid.UUID
    section: str
    question_id: str
    answer: Any = None


@router.post("/test-answers")
async def record_answer(
    request: AnswerRequest,
    session_token: Optional[str] = Depends(get_session_token),
    sessions: TestSessionService = Depends(get_test_session_service),
):
    """Save (or overwrite) the answer to one question"""
    try:
        value = parse_answer_value(request.answer)
    except ValueError:
        raise ValidationError("Unsupported answer format")

    answer = sessions.record_answer(
        request.session_id,
        session_token,
        request.section,
        request.question_id,
        value,
    )
    return {"answer": answer_json(answer)}

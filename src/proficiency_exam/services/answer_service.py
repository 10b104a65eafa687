"""Answer Service - per-question answers, one row per (session, section, question)"""

import logging
import uuid
from typing import List, Union

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from proficiency_exam.models.test_answer import AudioRecording, TestAnswer, TextAnswer
from proficiency_exam.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


class AnswerService:
    """Service for storing and listing test answers"""

    def __init__(self, db_session: Session, clock: Clock = utcnow):
        self.db = db_session
        self.clock = clock

    def _find(self, session_id: uuid.UUID, section: str, question_id: str):
        statement = select(TestAnswer).where(
            TestAnswer.session_id == session_id,
            TestAnswer.section == section,
            TestAnswer.question_id == question_id,
        )
        return self.db.exec(statement).first()

    def upsert(
        self,
        session_id: uuid.UUID,
        section: str,
        question_id: str,
        value: Union[TextAnswer, AudioRecording],
    ) -> TestAnswer:
        """
        Save the answer for a question, replacing any earlier one.

        Args:
            session_id: Session the answer belongs to
            section: Exam section (reading, listening, writing, speaking)
            question_id: Question identifier within the section
            value: Tagged answer value

        Returns:
            The stored TestAnswer. Writing the same key twice leaves one row
            holding the latest value.
        """
        payload = value.model_dump(mode="json")
        now = self.clock()

        answer = self._find(session_id, section, question_id)
        if answer is None:
            answer = TestAnswer(
                session_id=session_id,
                section=section,
                question_id=question_id,
                answer=payload,
                created_at=now,
                updated_at=now,
            )
            self.db.add(answer)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent write inserted the same key first; overwrite it
                self.db.rollback()
                logger.info(
                    f"Answer {section}/{question_id} inserted concurrently, updating"
                )
                answer = self._find(session_id, section, question_id)
                if answer is None:
                    raise
                answer.answer = payload
                answer.updated_at = now
                self.db.add(answer)
                self.db.commit()
        else:
            answer.answer = payload
            answer.is_correct = None
            answer.score = None
            answer.updated_at = now
            self.db.add(answer)
            self.db.commit()

        self.db.refresh(answer)
        return answer

    def list_for_session(self, session_id: uuid.UUID) -> List[TestAnswer]:
        """All answers of a session, oldest first"""
        statement = (
            select(TestAnswer)
            .where(TestAnswer.session_id == session_id)
            .order_by(TestAnswer.created_at)
        )
        return list(self.db.exec(statement).all())

"""Scoring engine - deterministic rubric from stored answers to section scores.

Everything here is pure: no database, no clock, no randomness except the
certificate id, which is minted separately so scoring can be re-derived by
hand for the same answers.
"""

import logging
import math
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from proficiency_exam.models.test_answer import AudioRecording, Section, TextAnswer
from proficiency_exam.services.answer_key import (
    DEFAULT_ANSWER_KEY,
    AnswerKey,
    KeyEntry,
    QuestionKind,
    WritingTask,
    infer_kind,
)

logger = logging.getLogger(__name__)

OBJECTIVE_SECTIONS = (Section.READING, Section.LISTENING)
OPEN_ENDED_SECTIONS = (Section.WRITING, Section.SPEAKING)

# (minimum accuracy, banded score), checked top down
ACCURACY_BANDS = ((0.8, 95), (0.6, 85), (0.4, 75), (0.2, 65))
ACCURACY_FLOOR_SCORE = 60
SUSTAINED_MIN_ANSWERED = 10
SUSTAINED_MIN_ACCURACY = 0.75
SUSTAINED_BONUS = 5

MATCHING_THRESHOLD = 0.6
SIGNIFICANT_WORD_MIN_LENGTH = 3

AUDIO_BASE_POINTS = 60
# (size above, points), checked top down
AUDIO_SIZE_TIERS = ((100000, 20), (50000, 15), (20000, 10))
AUDIO_MIN_SIZE_POINTS = 5
AUDIO_TIMESTAMP_POINTS = 15
SPEAKING_TEXT_POINTS = 40

OPEN_ENDED_CURVE = 15
OPEN_ENDED_FLOOR = 65
COMPLETION_BONUS = 5
DEFAULT_EXPECTED_ITEMS = 2

MAX_SCORE = 100


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class AnswerResult:
    is_correct: Optional[bool]
    score: int


@dataclass
class ScoreReport:
    reading: int
    listening: int
    writing: int
    speaking: int
    total: int
    # keyed by TestAnswer id
    answer_results: Dict[uuid.UUID, AnswerResult] = field(default_factory=dict)

    def section_scores(self) -> Dict[str, int]:
        return {
            "reading": self.reading,
            "listening": self.listening,
            "writing": self.writing,
            "speaking": self.speaking,
        }


def _split_selections(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def is_objective_correct(question_id: str, entry: KeyEntry, given: str) -> bool:
    """
    Check one closed-form answer. ``given`` is already trimmed and lowercased.

    - exact: string equality
    - fill-in: any significant key word (3+ characters) appears in the answer,
      or the whole answer equals the key
    - matching: the selections hit at least 60% of the correct set
    """
    expected = entry.answer.strip().lower()
    kind = entry.kind or infer_kind(question_id)

    if kind == QuestionKind.FILL_IN:
        words = [
            word
            for word in expected.replace(",", " ").split()
            if len(word) >= SIGNIFICANT_WORD_MIN_LENGTH
        ]
        return given == expected or any(word in given for word in words)

    if kind == QuestionKind.MATCHING:
        correct = set(_split_selections(expected))
        selected = set(_split_selections(given))
        return len(selected & correct) >= len(correct) * MATCHING_THRESHOLD

    return given == expected


def band_accuracy(correct: int, answered: int) -> int:
    """Step function from accuracy to a section score; 0 when nothing was answered"""
    if answered == 0:
        return 0

    accuracy = correct / answered
    score = ACCURACY_FLOOR_SCORE
    for threshold, banded in ACCURACY_BANDS:
        if accuracy >= threshold:
            score = banded
            break

    if answered >= SUSTAINED_MIN_ANSWERED and accuracy >= SUSTAINED_MIN_ACCURACY:
        score += SUSTAINED_BONUS

    return min(MAX_SCORE, score)


def score_writing_item(task: Optional[WritingTask], text: str) -> int:
    # Prompts without a rubric earn nothing
    if task is None:
        return 0

    word_count = len(text.split())
    score = task.short_points
    for min_words, points in task.length_tiers:
        if word_count >= min_words:
            score = points
            break

    for markers, points in task.marker_groups:
        if any(marker in text for marker in markers):
            score += points

    return min(MAX_SCORE, score)


def score_speaking_item(value: Union[TextAnswer, AudioRecording]) -> int:
    if not isinstance(value, AudioRecording):
        return SPEAKING_TEXT_POINTS

    score = AUDIO_BASE_POINTS
    for min_size, points in AUDIO_SIZE_TIERS:
        if value.size > min_size:
            score += points
            break
    else:
        score += AUDIO_MIN_SIZE_POINTS

    if value.recorded_at:
        score += AUDIO_TIMESTAMP_POINTS

    return min(MAX_SCORE, score)


def curve_open_ended(item_scores: List[int], expected_items: int) -> int:
    """Average capped item scores, curve them up and add the completion bonus"""
    if not item_scores:
        return 0

    average = round_half_up(sum(item_scores) / len(item_scores))
    score = max(OPEN_ENDED_FLOOR, average + OPEN_ENDED_CURVE)
    if len(item_scores) >= expected_items:
        score += COMPLETION_BONUS
    return min(MAX_SCORE, score)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, TextAnswer) and not value.value.strip())


def score_answers(answers: Iterable, key: AnswerKey = DEFAULT_ANSWER_KEY) -> ScoreReport:
    """
    Score a session's stored answers.

    Args:
        answers: Objects with ``id``, ``section``, ``question_id`` and ``value``
            (TestAnswer rows)
        key: Answer key and writing rubric

    Returns:
        ScoreReport with the four section scores, the composite and a result
        for every answer that was scored. Blank answers and unknown sections
        are skipped entirely.
    """
    objective_counts: Dict[str, Tuple[int, int]] = {
        section.value: (0, 0) for section in OBJECTIVE_SECTIONS
    }
    open_ended_items: Dict[str, List[int]] = {
        section.value: [] for section in OPEN_ENDED_SECTIONS
    }
    results: Dict[uuid.UUID, AnswerResult] = {}

    for answer in answers:
        value = answer.value
        if _is_blank(value):
            continue

        section = answer.section
        question_id = answer.question_id

        if section in objective_counts:
            entry = key.objective.get(question_id)
            if entry is None or not isinstance(value, TextAnswer):
                is_correct = False
            else:
                is_correct = is_objective_correct(
                    question_id, entry, value.normalized()
                )
            correct, answered = objective_counts[section]
            objective_counts[section] = (correct + int(is_correct), answered + 1)
            results[answer.id] = AnswerResult(
                is_correct=is_correct, score=1 if is_correct else 0
            )

        elif section == Section.WRITING.value:
            if isinstance(value, TextAnswer):
                item = score_writing_item(
                    key.writing_tasks.get(question_id), value.normalized()
                )
            else:
                item = 0
            open_ended_items[section].append(item)
            results[answer.id] = AnswerResult(is_correct=None, score=item)

        elif section == Section.SPEAKING.value:
            item = score_speaking_item(value)
            open_ended_items[section].append(item)
            results[answer.id] = AnswerResult(is_correct=None, score=item)

        else:
            logger.warning(f"Skipping answer {answer.id} in unknown section {section}")

    scores = {
        section: band_accuracy(correct, answered)
        for section, (correct, answered) in objective_counts.items()
    }
    for section, items in open_ended_items.items():
        expected = key.expected_items.get(section, DEFAULT_EXPECTED_ITEMS)
        scores[section] = curve_open_ended(items, expected)

    total = round_half_up(
        (
            scores["reading"]
            + scores["listening"]
            + scores["writing"]
            + scores["speaking"]
        )
        / 4
    )

    return ScoreReport(
        reading=scores["reading"],
        listening=scores["listening"],
        writing=scores["writing"],
        speaking=scores["speaking"],
        total=total,
        answer_results=results,
    )


def mint_certificate_id(now: datetime) -> str:
    """``EP<year>-<4 random digits>``"""
    return f"EP{now.year}-{secrets.randbelow(10000):04d}"

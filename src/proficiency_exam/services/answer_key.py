"""Answer key and open-ended rubric for the current exam form"""

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


class QuestionKind(str, enum.Enum):
    EXACT = "exact"  # multiple choice, true/false
    FILL_IN = "fill_in"  # fill-in-the-blank, short answer
    MATCHING = "matching"  # multi-select, matching


@dataclass(frozen=True)
class KeyEntry:
    answer: str
    # None falls back to infer_kind(question_id)
    kind: Optional[QuestionKind] = None


@dataclass(frozen=True)
class WritingTask:
    """
    Heuristic rubric for one writing prompt.

    ``length_tiers`` are (minimum words, points) pairs checked in order; the
    first tier met wins, otherwise ``short_points`` applies. Each marker group
    adds its points once when any of its words appears in the answer.
    """

    length_tiers: Tuple[Tuple[int, int], ...]
    short_points: int
    marker_groups: Tuple[Tuple[Tuple[str, ...], int], ...]


@dataclass(frozen=True)
class AnswerKey:
    objective: Dict[str, KeyEntry]
    writing_tasks: Dict[str, WritingTask]
    expected_items: Dict[str, int] = field(default_factory=dict)


def infer_kind(question_id: str) -> QuestionKind:
    """Kind for question ids that name their format (``reading_fill_3``, ``listening_matching_1``)"""
    if "matching" in question_id:
        return QuestionKind.MATCHING
    if "fill" in question_id or "short" in question_id:
        return QuestionKind.FILL_IN
    return QuestionKind.EXACT


DEFAULT_ANSWER_KEY = AnswerKey(
    objective={
        "reading_1": KeyEntry("b"),
        "reading_2": KeyEntry("b"),
        "reading_3": KeyEntry("true"),
        "reading_4": KeyEntry("intermittent", QuestionKind.FILL_IN),
        "reading_5": KeyEntry("b"),
        "reading_6": KeyEntry("c"),
        "reading_7": KeyEntry("false"),
        "reading_8": KeyEntry(
            "surgery simulations, ancient civilizations", QuestionKind.FILL_IN
        ),
        "reading_9": KeyEntry("b"),
        "reading_10": KeyEntry(
            "energy-storage,ai-learning,vr-surgery,grid-infrastructure",
            QuestionKind.MATCHING,
        ),
        "reading_11": KeyEntry("b"),
        "reading_12": KeyEntry("true"),
        "reading_13": KeyEntry("human connection", QuestionKind.FILL_IN),
        "reading_14": KeyEntry("denmark, germany", QuestionKind.FILL_IN),
        "reading_15": KeyEntry("b"),
        "listening_1": KeyEntry("b"),
        "listening_2": KeyEntry("b"),
        "listening_3": KeyEntry("a"),
        "listening_4": KeyEntry("250", QuestionKind.FILL_IN),
        "listening_5": KeyEntry("5", QuestionKind.FILL_IN),
        "listening_6": KeyEntry("ai integration, voice control", QuestionKind.FILL_IN),
        "listening_7": KeyEntry("a"),
        "listening_8": KeyEntry("12", QuestionKind.FILL_IN),
        "listening_9": KeyEntry("d"),
        "listening_10": KeyEntry(
            "multilingual workforce, tech hubs", QuestionKind.FILL_IN
        ),
    },
    writing_tasks={
        # Formal report, 150+ words
        "writing_1": WritingTask(
            length_tiers=((150, 30), (100, 20)),
            short_points=10,
            marker_groups=(
                (("executive", "summary"), 15),
                (("recommendation", "conclude"), 15),
                (("benefit", "cost"), 15),
                (("employee", "wellness"), 15),
                (("implement", "program"), 10),
            ),
        ),
        # Argumentative essay, 250+ words
        "writing_2": WritingTask(
            length_tiers=((250, 30), (200, 25), (150, 15)),
            short_points=5,
            marker_groups=(
                (("agree", "disagree"), 15),
                (("example", "instance"), 15),
                (("advantage", "benefit"), 10),
                (("disadvantage", "problem"), 10),
                (("conclusion", "summary"), 10),
                (("society", "communication"), 10),
            ),
        ),
    },
    expected_items={"writing": 2, "speaking": 2},
)

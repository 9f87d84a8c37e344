"""
IELTS Prep - Objective Answer Matching
Exact-match scoring of Listening and Reading answers against an answer key.

Answer keys come in two shapes: a single string (gap fill, T/F/NG,
multiple choice) or an ordered list (matching questions). Each shape has
its own comparison; dispatch is on the key's shape.
"""
from dataclasses import dataclass, field
from functools import singledispatch
from typing import Any, Dict, Optional, Union

from ieltsprep.services.scoring import calculate_band_score, percentage_correct


TRUE_VARIANTS = {"t", "true", "yes"}
FALSE_VARIANTS = {"f", "false", "no"}
NOT_GIVEN_VARIANTS = {"ng", "not given", "notgiven", "n/g"}

NUMBER_WORDS = {
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
    "ten": "10",
    "eleven": "11",
    "twelve": "12",
    "fifteen": "15",
    "twenty": "20",
    "thirty": "30",
    "forty": "40",
    "fifty": "50",
    "sixty": "60",
    "ninety": "90",
    "hundred": "100",
}

RawAnswer = Union[str, list, None]


@dataclass(frozen=True)
class ScalarAnswer:
    value: str


@dataclass(frozen=True)
class OrderedAnswer:
    values: tuple


@dataclass
class QuestionResult:
    correct: bool
    user_answer: Any
    correct_answer: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correct": self.correct,
            "userAnswer": self.user_answer,
            "correctAnswer": self.correct_answer,
        }


@dataclass
class ObjectiveScore:
    correct: int
    total: int
    percentage: float
    band: float
    results: Dict[str, QuestionResult] = field(default_factory=dict)

    def details(self) -> Dict[str, Any]:
        """Serializable breakdown stored on the section result."""
        return {
            "correct": self.correct,
            "total": self.total,
            "percentage": self.percentage,
            "results": {qid: r.to_dict() for qid, r in self.results.items()},
        }


def normalize_answer(answer: Any) -> str:
    """
    Normalize an answer for comparison.

    Trims, lowercases and folds the usual TRUE/FALSE/NOT GIVEN spellings
    and spelled-out numbers onto one canonical form.
    """
    normalized = str(answer).strip().lower()

    if normalized in TRUE_VARIANTS:
        return "true"
    if normalized in FALSE_VARIANTS:
        return "false"
    if normalized in NOT_GIVEN_VARIANTS:
        return "not given"

    return NUMBER_WORDS.get(normalized, normalized)


def to_answer_shape(key: Any):
    """Lift a raw answer-key entry into its shape."""
    if isinstance(key, (list, tuple)):
        return OrderedAnswer(tuple(key))
    return ScalarAnswer(str(key))


@singledispatch
def matches(expected, user_answer: RawAnswer) -> bool:
    raise TypeError(f"Unsupported answer shape: {type(expected).__name__}")


@matches.register
def _(expected: ScalarAnswer, user_answer: RawAnswer) -> bool:
    if user_answer is None or isinstance(user_answer, (list, tuple)):
        return False
    return normalize_answer(user_answer) == normalize_answer(expected.value)


@matches.register
def _(expected: OrderedAnswer, user_answer: RawAnswer) -> bool:
    # Order matters for matching questions
    if not isinstance(user_answer, (list, tuple)):
        return False
    if len(user_answer) != len(expected.values):
        return False
    return all(
        given is not None and normalize_answer(given) == normalize_answer(wanted)
        for given, wanted in zip(user_answer, expected.values)
    )


def check_answer(user_answer: RawAnswer, correct_answer: Any) -> bool:
    return matches(to_answer_shape(correct_answer), user_answer)


def score_answers(
    answer_key: Dict[str, Any],
    answers: Optional[Dict[str, RawAnswer]],
) -> ObjectiveScore:
    """
    Score a submission against an answer key.

    Every question in the key counts towards the total; unanswered
    questions are simply wrong. Extra answers not in the key are ignored.
    """
    answers = answers or {}
    results: Dict[str, QuestionResult] = {}
    correct = 0

    for question_id, correct_answer in answer_key.items():
        user_answer = answers.get(question_id)
        is_correct = check_answer(user_answer, correct_answer)
        if is_correct:
            correct += 1
        results[question_id] = QuestionResult(
            correct=is_correct,
            user_answer=user_answer,
            correct_answer=correct_answer,
        )

    total = len(answer_key)
    percentage = percentage_correct(correct, total)

    return ObjectiveScore(
        correct=correct,
        total=total,
        percentage=percentage,
        band=calculate_band_score(percentage),
        results=results,
    )

"""
Pure exam grading.

Nothing here touches the database: questions are any objects exposing
``id``, ``type``, ``answer`` and ``marks`` (model instances in production,
plain namespaces in tests), answers are the validated submission dicts.
"""
from dataclasses import dataclass, field
from typing import Any, List

from django.conf import settings

MULTIPLE_CHOICE = "multiple_choice"
MULTIPLE_SELECT = "multiple_select"
TRUE_FALSE = "true_false"
NUMERIC = "numeric"
SHORT_ANSWER = "short_answer"

OBJECTIVE_TYPES = (MULTIPLE_CHOICE, MULTIPLE_SELECT, TRUE_FALSE, NUMERIC)


def pass_percentage():
    return getattr(settings, 'EXAM_PASS_PERCENTAGE', 60)


def negative_marking_fraction():
    return getattr(settings, 'NEGATIVE_MARKING_FRACTION', 0.25)


@dataclass
class GradedAnswer:
    question_id: str
    answer: Any
    time_spent: float
    is_correct: bool = False
    marks: float = 0
    needs_review: bool = False

    def as_detail(self):
        return {
            'questionId': self.question_id,
            'answer': self.answer,
            'timeSpent': self.time_spent,
            'isCorrect': self.is_correct,
            'marks': self.marks,
            'needsReview': self.needs_review,
        }


@dataclass
class ScoreSummary:
    total_score: float
    max_score: int
    percentage: float
    passed: bool
    time_spent: float
    graded: List[GradedAnswer] = field(default_factory=list)

    @property
    def needs_review(self):
        return any(g.needs_review for g in self.graded)

    def as_detail(self, auto_submitted=False):
        return {
            'answers': [g.as_detail() for g in self.graded],
            'totalScore': self.total_score,
            'maxScore': self.max_score,
            'percentage': self.percentage,
            'passed': self.passed,
            'timeSpent': self.time_spent,
            'autoSubmitted': auto_submitted,
            'needsReview': self.needs_review,
        }


def _as_list(value):
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value]
    return [str(value).strip()]


def answers_match(question_type, submitted, key):
    """Compares a submitted answer with the stored key for objective questions."""
    if key is None or submitted is None:
        return False

    if question_type == MULTIPLE_SELECT:
        return set(_as_list(submitted)) == set(_as_list(key))

    if isinstance(submitted, (list, tuple)):
        return False

    if question_type == TRUE_FALSE:
        return str(submitted).strip().lower() == str(key).strip().lower()

    if question_type == NUMERIC:
        try:
            return abs(float(submitted) - float(key)) < 1e-9
        except (TypeError, ValueError):
            return False

    return str(submitted).strip() == str(key).strip()


def penalty_for(question, negative_marking):
    """The (non-positive) contribution of a wrong objective answer."""
    if not negative_marking:
        return 0
    return -question.marks * negative_marking_fraction()


def grade_answer(question, submission, negative_marking=False):
    graded = GradedAnswer(
        question_id=str(submission['questionId']),
        answer=submission.get('answer'),
        time_spent=submission.get('timeSpent', 0) or 0,
    )
    if question is None:
        return graded

    if question.type == SHORT_ANSWER:
        # Left for manual grading
        graded.needs_review = True
        return graded

    if question.type in OBJECTIVE_TYPES:
        graded.is_correct = answers_match(question.type, graded.answer, question.answer)
        graded.marks = question.marks if graded.is_correct else penalty_for(question, negative_marking)
    return graded


def calculate_percentage(total_score, max_score):
    if max_score <= 0:
        return 0
    return total_score * 100 / max_score


def is_passing(percentage, threshold=None):
    threshold = pass_percentage() if threshold is None else threshold
    return percentage >= threshold


def score_submission(questions, answers, negative_marking=False):
    """
    Grades every submitted answer against its question.

    Penalties from negative marking count towards the total, which never goes
    below zero. maxScore is the sum of the marks of every question on the exam,
    answered or not.
    """
    by_id = {str(q.id): q for q in questions}
    graded = [
        grade_answer(by_id.get(str(a['questionId'])), a, negative_marking)
        for a in answers
    ]

    max_score = sum(q.marks for q in questions)
    total_score = max(sum(g.marks for g in graded), 0)
    percentage = calculate_percentage(total_score, max_score)

    return ScoreSummary(
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        passed=is_passing(percentage),
        time_spent=sum(g.time_spent for g in graded),
        graded=graded,
    )

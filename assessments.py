"""
assessments.py
Multiple-choice assessments that students take on their own.

A submission is scored here from the answer key. Scores are informational:
nothing in this module touches a member's level, which only a tutor's
verify_level_up decision changes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

import utils
from errors import AssessmentNotFound, InvalidInput, ProfileNotFound
from models import Assessment, Question, Submission, check_level
from store import SQLiteStore

logger = logging.getLogger(__name__)


def score_answers(questions, answers) -> float:
    """Percent of questions answered with the correct option, one decimal place."""
    correct = sum(1 for q, a in zip(questions, answers) if a == q.correct_index)
    return round(correct * 100 / len(questions), 1)


class AssessmentBook:
    def __init__(self, store: SQLiteStore, clock: Callable[[], datetime] = utils.utc_now):
        self.store = store
        self.clock = clock

    def create_assessment(self, title: str, level: int, questions, created_by: str,
                          assessment_type: str = "quiz") -> Assessment:
        if not title.strip():
            raise InvalidInput("Title is required.")
        check_level(level)
        assessment = Assessment(
            id=utils.generate_id(),
            title=title.strip(),
            level=level,
            assessment_type=assessment_type.strip() or "quiz",
            questions=tuple(
                q if isinstance(q, Question) else Question(q["prompt"], tuple(q["options"]), q["correct_index"])
                for q in questions
            ),
            created_by=created_by,
            created_at=utils.to_iso(self.clock()),
        )
        self.store.put_assessment(assessment)
        logger.info("Assessment %s (level %s) created by %s", assessment.id, level, created_by)
        return assessment

    def get_assessment(self, assessment_id: str) -> Assessment:
        assessment = self.store.get_assessment(assessment_id)
        if assessment is None:
            raise AssessmentNotFound(assessment_id)
        return assessment

    def list_assessments(self, level: int | None = None) -> list[Assessment]:
        if level is not None:
            check_level(level)
        return self.store.list_assessments(level)

    def submit_assessment(self, assessment_id: str, user_id: str, answers) -> Submission:
        answers = tuple(answers)
        with self.store.transaction():
            if self.store.get_profile(user_id) is None:
                raise ProfileNotFound(user_id)
            assessment = self.get_assessment(assessment_id)
            if len(answers) != len(assessment.questions):
                raise InvalidInput(
                    f"Expected {len(assessment.questions)} answers, got {len(answers)}"
                )
            for q, a in zip(assessment.questions, answers):
                if isinstance(a, bool) or not isinstance(a, int) or not 0 <= a < len(q.options):
                    raise InvalidInput(f"Answer {a!r} is not an option for {q.prompt!r}")
            submission = Submission(
                id=utils.generate_id(),
                assessment_id=assessment_id,
                user_id=user_id,
                answers=answers,
                score=score_answers(assessment.questions, answers),
                submitted_at=utils.to_iso(self.clock()),
            )
            self.store.append_submission(submission)
        logger.info("%s scored %.1f on assessment %s", user_id, submission.score, assessment_id)
        return submission

    def list_submissions(self, user_id: str | None = None, assessment_id: str | None = None) -> list[Submission]:
        return self.store.list_submissions(user_id=user_id, assessment_id=assessment_id)

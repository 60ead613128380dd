"""Tests for self-study assessments and their submissions."""

from __future__ import annotations

import pytest

from errors import AssessmentNotFound, InvalidInput, ProfileNotFound
from models import Question

QUESTIONS = [
    Question("你好 means?", ("Goodbye", "Hello", "Thanks"), 1),
    Question("谢谢 means?", ("Thanks", "Sorry"), 0),
    Question("再见 means?", ("Hello", "Goodbye"), 1),
]


@pytest.fixture
def quiz(book, tutor):
    return book.create_assessment("Greetings", 1, QUESTIONS, tutor.id)


class TestCreateAssessment:
    def test_create_and_get(self, book, quiz):
        assert book.get_assessment(quiz.id) == quiz
        assert quiz.questions == tuple(QUESTIONS)
        assert quiz.assessment_type == "quiz"

    def test_questions_from_dicts(self, book, tutor):
        assessment = book.create_assessment(
            "Tones", 2, [{"prompt": "mā is which tone?", "options": ["1st", "3rd"], "correct_index": 0}], tutor.id,
        )
        assert book.get_assessment(assessment.id).questions == (Question("mā is which tone?", ("1st", "3rd"), 0),)

    @pytest.mark.parametrize("title, level, questions", [
        ("", 1, QUESTIONS),
        ("Greetings", 0, QUESTIONS),
        ("Greetings", 6, QUESTIONS),
        ("Greetings", 1, []),
    ])
    def test_invalid_assessment_writes_nothing(self, book, tutor, title, level, questions):
        with pytest.raises(InvalidInput):
            book.create_assessment(title, level, questions, tutor.id)
        assert book.list_assessments() == []

    @pytest.mark.parametrize("prompt, options, correct", [
        (" ", ("a", "b"), 0),
        ("Pick", ("a",), 0),
        ("Pick", ("a", "b"), 2),
    ])
    def test_invalid_question(self, prompt, options, correct):
        with pytest.raises(InvalidInput):
            Question(prompt, options, correct)

    def test_list_by_level(self, book, tutor, quiz, clock):
        clock.advance(minutes=5)
        later = book.create_assessment("Numbers", 2, QUESTIONS[:1], tutor.id)
        assert [a.id for a in book.list_assessments()] == [later.id, quiz.id]
        assert [a.id for a in book.list_assessments(1)] == [quiz.id]
        with pytest.raises(InvalidInput):
            book.list_assessments(9)

    def test_unknown_assessment(self, book):
        with pytest.raises(AssessmentNotFound):
            book.get_assessment("nope")


class TestSubmitAssessment:
    @pytest.mark.parametrize("answers, score", [
        ([1, 0, 1], 100.0),
        ([1, 0, 0], 66.7),
        ([0, 1, 0], 0.0),
    ])
    def test_score_is_percent_correct(self, book, quiz, student, answers, score):
        submission = book.submit_assessment(quiz.id, student.id, answers)
        assert submission.score == score
        assert submission.answers == tuple(answers)
        assert submission.submitted_at == "2025-01-31T09:30:00.000000+00:00"

    def test_submission_never_changes_level(self, book, manager, quiz, student):
        book.submit_assessment(quiz.id, student.id, [1, 0, 1])
        profile = manager.get_profile(student.id)
        assert profile.membership_level == 1
        assert manager.list_certificates(student.id) == []
        assert manager.list_level_verifications(student.id) == []

    def test_list_submissions(self, book, quiz, student, clock):
        first = book.submit_assessment(quiz.id, student.id, [0, 0, 0])
        clock.advance(days=1)
        second = book.submit_assessment(quiz.id, student.id, [1, 0, 1])
        assert [s.id for s in book.list_submissions(user_id=student.id)] == [second.id, first.id]
        assert [s.id for s in book.list_submissions(assessment_id=quiz.id)] == [second.id, first.id]
        assert book.list_submissions(user_id="someone-else") == []

    @pytest.mark.parametrize("answers", [
        [1, 0],
        [1, 0, 1, 0],
        [1, 0, 5],
        [1, 0, True],
        [1, 0, "1"],
    ])
    def test_invalid_answers_write_nothing(self, book, quiz, student, answers):
        with pytest.raises(InvalidInput):
            book.submit_assessment(quiz.id, student.id, answers)
        assert book.list_submissions() == []

    def test_unknown_user(self, book, quiz):
        with pytest.raises(ProfileNotFound):
            book.submit_assessment(quiz.id, "ghost", [1, 0, 1])

    def test_unknown_assessment(self, book, student):
        with pytest.raises(AssessmentNotFound):
            book.submit_assessment("nope", student.id, [1])

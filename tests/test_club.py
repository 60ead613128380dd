"""Tests for events, RSVPs, attendance and the FAQ helper."""

from __future__ import annotations

import pytest

import faq
from errors import EventNotFound, InvalidInput
from models import Attendance


@pytest.fixture
def event(club):
    return club.create_event(
        "Calligraphy Workshop", "Brush basics", "2025-02-14", "Room 3.12", "com-1", session_code="CAL01",
    )


class TestEvents:
    def test_create_and_get(self, club, event):
        assert club.get_event(event.id) == event
        assert event.session_code == "CAL01"

    def test_create_requires_title_and_date(self, club):
        with pytest.raises(InvalidInput):
            club.create_event("  ", "", "2025-02-14", "", "com-1")
        with pytest.raises(InvalidInput):
            club.create_event("Karaoke", "", "14/02/2025", "", "com-1")

    def test_list_ordered_by_date(self, club, event):
        later = club.create_event("Dumpling Night", "", "2025-03-01", "Cafeteria", "com-1")
        earlier = club.create_event("Welcome Tea", "", "2025-01-10", "Lobby", "com-1")
        assert [e.id for e in club.list_events()] == [earlier.id, event.id, later.id]

    def test_update_event(self, club, event):
        updated = club.update_event(event.id, location="Hall A", title="Calligraphy II")
        assert updated.location == "Hall A"
        assert club.get_event(event.id).title == "Calligraphy II"
        assert club.get_event(event.id).created_by == "com-1"

    def test_update_rejects_unknown_fields(self, club, event):
        with pytest.raises(InvalidInput):
            club.update_event(event.id, created_by="someone-else")

    def test_update_missing_event(self, club):
        with pytest.raises(EventNotFound):
            club.update_event("nope", title="x")

    def test_delete_event_removes_rsvps(self, club, event):
        club.rsvp("stu-1", event.id)
        club.delete_event(event.id)
        with pytest.raises(EventNotFound):
            club.get_event(event.id)
        assert club.list_user_rsvps("stu-1") == []


class TestRSVP:
    def test_rsvp_and_cancel(self, club, event):
        club.rsvp("stu-1", event.id)
        assert club.is_rsvped("stu-1", event.id) is True
        assert len(club.list_event_rsvps(event.id)) == 1
        club.cancel_rsvp("stu-1", event.id)
        assert club.is_rsvped("stu-1", event.id) is False

    def test_duplicate_rsvp_rejected(self, club, event):
        club.rsvp("stu-1", event.id)
        with pytest.raises(InvalidInput):
            club.rsvp("stu-1", event.id)
        assert len(club.list_user_rsvps("stu-1")) == 1

    def test_rsvp_unknown_event(self, club):
        with pytest.raises(EventNotFound):
            club.rsvp("stu-1", "nope")


class TestAttendance:
    def test_check_in_by_session_code(self, club, event):
        record = club.check_in("stu-1", session_code=" CAL01 ")
        assert record.event_id == event.id
        assert record.event_title == "Calligraphy Workshop"
        assert record.type == "event"
        assert club.list_attendance(event_id=event.id) == [record]

    def test_check_in_by_event_id(self, club, event):
        record = club.check_in("stu-1", event_id=event.id)
        assert record.session_code == "CAL01"

    def test_check_in_needs_code_or_event(self, club):
        with pytest.raises(InvalidInput):
            club.check_in("stu-1")

    def test_check_in_unknown_code(self, club, event):
        with pytest.raises(InvalidInput):
            club.check_in("stu-1", session_code="WRONG")
        assert club.list_attendance() == []

    def test_class_attendance_and_tutor_roster(self, manager, club, student, tutor):
        manager.assign_class(tutor.id, "HYB01")
        club.record_class_attendance(student.id, "HYB01", "Level 1 - Beginner")

        roster = club.tutor_class(tutor.id)
        assert roster["class"] == {"class_name": "HYB01", "level": 1}
        assert [s.id for s in roster["students"]] == [student.id]
        assert [a.type for a in roster["attendance"]] == ["class"]

    def test_roster_without_class(self, club, tutor):
        assert club.tutor_class(tutor.id) == {"class": None, "students": [], "attendance": []}

    def test_list_classes(self, manager, club, tutor):
        other = manager.create_profile("tut-2", "ong@club.test", "Ong Hui", "tutor")
        manager.create_profile("tut-3", "tan@club.test", "Tan Jun", "tutor")
        manager.assign_class(other.id, "HYB03")
        manager.assign_class(tutor.id, "HYB01")
        assert club.list_classes() == [
            {"class_name": "HYB01", "level": 1, "tutor_id": tutor.id, "tutor_name": "Lim Wei"},
            {"class_name": "HYB03", "level": 3, "tutor_id": "tut-2", "tutor_name": "Ong Hui"},
        ]

    def test_unknown_attendance_type_rejected(self):
        with pytest.raises(InvalidInput):
            Attendance(
                id="a-1", user_id="stu-1", event_id=None, event_title=None,
                session_code=None, class_name="HYB01", type="lecture",
                checked_in_at="2025-01-31T09:30:00+00:00",
            )

    def test_admin_stats(self, club, student, tutor, event):
        club.check_in(student.id, event_id=event.id)
        assert club.admin_stats() == {
            "total_users": 2,
            "total_students": 1,
            "total_events": 1,
            "total_attendance": 1,
        }


class TestFaq:
    @pytest.mark.parametrize("question, expected", [
        ("How much is the FEE?", "RM50"),
        ("How do I move up a level?", "5 proficiency levels"),
        ("Any events this week?", "Events page"),
        ("how to check in", "session code"),
        ("Can I pay by card?", "4 months"),
        ("Who are the tutors", "verified by admins"),
        ("join the committee", "Committee members"),
    ])
    def test_keyword_answers(self, question, expected):
        assert expected in faq.answer(question)

    def test_default_answer(self):
        assert faq.answer("hello") == faq.DEFAULT_ANSWER

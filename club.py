"""
club.py
Club activities around the membership core: events, RSVPs, attendance
check-in, tutor class rosters and admin statistics.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable

import utils
from errors import EventNotFound, InvalidInput
from models import RSVP, Attendance, Event
from store import SQLiteStore

logger = logging.getLogger(__name__)


class ClubActivities:
    def __init__(self, store: SQLiteStore, clock: Callable[[], datetime] = utils.utc_now):
        self.store = store
        self.clock = clock

    def _require_event(self, event_id: str) -> Event:
        event = self.store.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    # ---------- events ----------

    def create_event(self, title: str, description: str, event_date: str, location: str,
                     created_by: str, session_code: str | None = None) -> Event:
        errors = utils.validate_event_inputs(title, event_date)
        if errors:
            raise InvalidInput(" ".join(errors))
        event = Event(
            id=utils.generate_id(),
            title=title.strip(),
            description=description.strip(),
            date=event_date,
            location=location.strip(),
            session_code=(session_code or "").strip() or None,
            created_by=created_by,
            created_at=utils.to_iso(self.clock()),
        )
        self.store.put_event(event)
        logger.info("Event %s created by %s", event.id, created_by)
        return event

    def update_event(self, event_id: str, **updates) -> Event:
        allowed = {"title", "description", "date", "location", "session_code"}
        unknown = set(updates) - allowed
        if unknown:
            raise InvalidInput(f"Cannot update event fields: {', '.join(sorted(unknown))}")
        with self.store.transaction():
            event = replace(self._require_event(event_id), **updates)
            errors = utils.validate_event_inputs(event.title, event.date)
            if errors:
                raise InvalidInput(" ".join(errors))
            self.store.put_event(event)
        logger.info("Event %s updated (%s)", event_id, ", ".join(sorted(updates)))
        return event

    def delete_event(self, event_id: str) -> None:
        with self.store.transaction():
            self._require_event(event_id)
            self.store.delete_event(event_id)
        logger.info("Event %s deleted", event_id)

    def get_event(self, event_id: str) -> Event:
        return self._require_event(event_id)

    def list_events(self) -> list[Event]:
        return self.store.list_events()

    def upcoming_events(self) -> list[Event]:
        today = date.today().isoformat()
        return [e for e in self.store.list_events() if e.date >= today]

    # ---------- rsvp ----------

    def rsvp(self, user_id: str, event_id: str) -> RSVP:
        with self.store.transaction():
            self._require_event(event_id)
            if self.store.find_rsvp(user_id, event_id) is not None:
                raise InvalidInput("Already RSVPed to this event.")
            rsvp = RSVP(
                id=utils.generate_id(),
                user_id=user_id,
                event_id=event_id,
                rsvped_at=utils.to_iso(self.clock()),
            )
            self.store.append_rsvp(rsvp)
        return rsvp

    def cancel_rsvp(self, user_id: str, event_id: str) -> None:
        self.store.delete_rsvp(user_id, event_id)

    def is_rsvped(self, user_id: str, event_id: str) -> bool:
        return self.store.find_rsvp(user_id, event_id) is not None

    def list_user_rsvps(self, user_id: str) -> list[RSVP]:
        return self.store.list_rsvps(user_id=user_id)

    def list_event_rsvps(self, event_id: str) -> list[RSVP]:
        return self.store.list_rsvps(event_id=event_id)

    # ---------- attendance ----------

    def check_in(self, user_id: str, session_code: str | None = None, event_id: str | None = None) -> Attendance:
        """Check in to an event by id or by the session code shown at the venue."""
        session_code = (session_code or "").strip() or None
        if not session_code and not event_id:
            raise InvalidInput("A session code or event is required to check in.")
        if event_id:
            event = self._require_event(event_id)
        else:
            event = self.store.find_event_by_session_code(session_code)
            if event is None:
                raise InvalidInput(f"No event uses session code {session_code!r}")
        record = Attendance(
            id=utils.generate_id(),
            user_id=user_id,
            event_id=event.id,
            event_title=event.title,
            session_code=session_code or event.session_code,
            class_name=None,
            type="event",
            checked_in_at=utils.to_iso(self.clock()),
        )
        self.store.append_attendance(record)
        logger.info("%s checked in to event %s", user_id, event.id)
        return record

    def record_class_attendance(self, user_id: str, session_code: str, class_name: str) -> Attendance:
        if not class_name:
            raise InvalidInput("Class name is required.")
        record = Attendance(
            id=utils.generate_id(),
            user_id=user_id,
            event_id=None,
            event_title=None,
            session_code=session_code,
            class_name=class_name,
            type="class",
            checked_in_at=utils.to_iso(self.clock()),
        )
        self.store.append_attendance(record)
        logger.info("%s attended class %s", user_id, class_name)
        return record

    def list_attendance(self, user_id: str | None = None, event_id: str | None = None) -> list[Attendance]:
        return self.store.list_attendance(user_id=user_id, event_id=event_id)

    # ---------- rosters / stats ----------

    def tutor_class(self, tutor_id: str) -> dict:
        profile = self.store.get_profile(tutor_id)
        if profile is None or not profile.assigned_class:
            return {"class": None, "students": [], "attendance": []}
        class_code = profile.assigned_class
        students = self.store.list_profiles("student")
        attendance = [
            a for a in self.store.list_attendance()
            if a.class_name == class_code or a.session_code == class_code
        ]
        return {
            "class": {"class_name": class_code, "level": profile.assigned_level or 1},
            "students": students,
            "attendance": attendance,
        }

    def list_classes(self) -> list[dict]:
        """Classes that currently have a tutor, ordered by level."""
        classes = [
            {
                "class_name": t.assigned_class,
                "level": t.assigned_level or 1,
                "tutor_id": t.id,
                "tutor_name": t.name,
            }
            for t in self.store.list_profiles("tutor")
            if t.assigned_class
        ]
        return sorted(classes, key=lambda c: (c["level"], c["class_name"]))

    def admin_stats(self) -> dict:
        users = self.store.list_profiles()
        return {
            "total_users": len(users),
            "total_students": sum(1 for u in users if u.role == "student"),
            "total_events": len(self.store.list_events()),
            "total_attendance": len(self.store.list_attendance()),
        }

"""
store.py
SQLite-backed store for profiles, ledgers and club activity records.

Every method either runs inside the caller's transaction() or, outside one,
on its own short-lived connection. sqlite3 errors surface as StorageError.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path

import db
from errors import StorageError
from models import (
    RSVP,
    Assessment,
    Attendance,
    Certificate,
    Event,
    Grade,
    LevelVerification,
    Payment,
    Submission,
    UserProfile,
)

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = (
    "id", "email", "name", "role", "membership_level", "membership_expiry",
    "membership_active", "verified", "verification_status",
    "assigned_class", "assigned_level", "created_at",
)


class SQLiteStore:
    def __init__(self, db_file: Path | str):
        self.db_file = Path(db_file)
        self._local = threading.local()

    # ---------- connection handling ----------

    @property
    def _conn(self) -> sqlite3.Connection | None:
        return getattr(self._local, "conn", None)

    @contextmanager
    def transaction(self):
        """
        Group the writes of one operation. BEGIN IMMEDIATE takes the write
        lock up front, so concurrent read-modify-write operations serialize.
        Nested calls join the outer transaction.
        """
        if self._conn is not None:
            yield self
            return
        try:
            conn = db.connect(self.db_file)
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        self._local.conn = conn
        try:
            yield self
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
        finally:
            self._local.conn = None
            conn.close()

    def _run(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            if self._conn is not None:
                return self._conn.execute(sql, params).fetchall()
            with db.get_conn(self.db_file) as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Storage error running %r: %s", sql.split()[0], e)
            raise StorageError(str(e)) from e

    def _insert(self, table: str, record: dict) -> None:
        cols = ", ".join(record)
        marks = ", ".join("?" for _ in record)
        self._run(f"INSERT INTO {table}({cols}) VALUES({marks})", tuple(record.values()))

    # ---------- profiles ----------

    def get_profile(self, user_id: str) -> UserProfile | None:
        rows = self._run("SELECT * FROM user_profiles WHERE id = ?", (user_id,))
        return UserProfile.from_row(rows[0]) if rows else None

    def put_profile(self, profile: UserProfile) -> None:
        data = asdict(profile)
        values = tuple(data[c] for c in PROFILE_COLUMNS)
        updates = ", ".join(f"{c}=excluded.{c}" for c in PROFILE_COLUMNS if c not in ("id", "created_at"))
        self._run(
            f"""
            INSERT INTO user_profiles({", ".join(PROFILE_COLUMNS)}, updated_at)
            VALUES({", ".join("?" for _ in PROFILE_COLUMNS)}, datetime('now'))
            ON CONFLICT(id) DO UPDATE SET {updates}, updated_at=excluded.updated_at
            """,
            values,
        )

    def list_profiles(self, role: str | None = None) -> list[UserProfile]:
        if role:
            rows = self._run("SELECT * FROM user_profiles WHERE role = ? ORDER BY created_at DESC", (role,))
        else:
            rows = self._run("SELECT * FROM user_profiles ORDER BY created_at DESC")
        return [UserProfile.from_row(r) for r in rows]

    def list_expired_active(self, now_iso: str) -> list[UserProfile]:
        rows = self._run(
            "SELECT * FROM user_profiles WHERE membership_active = 1 AND membership_expiry < ?",
            (now_iso,),
        )
        return [UserProfile.from_row(r) for r in rows]

    # ---------- ledgers ----------

    def append_payment(self, payment: Payment) -> None:
        self._insert("payments", asdict(payment))

    def list_payments(self, user_id: str | None = None) -> list[Payment]:
        if user_id:
            rows = self._run("SELECT * FROM payments WHERE user_id = ? ORDER BY paid_at DESC", (user_id,))
        else:
            rows = self._run("SELECT * FROM payments ORDER BY paid_at DESC")
        return [Payment.from_row(r) for r in rows]

    def append_grade(self, grade: Grade) -> None:
        self._insert("grades", asdict(grade))

    def list_grades(self, student_id: str, level: int | None = None) -> list[Grade]:
        if level is None:
            rows = self._run("SELECT * FROM grades WHERE student_id = ? ORDER BY graded_at DESC", (student_id,))
        else:
            rows = self._run(
                "SELECT * FROM grades WHERE student_id = ? AND level = ? ORDER BY graded_at DESC",
                (student_id, level),
            )
        return [Grade.from_row(r) for r in rows]

    def append_certificate(self, certificate: Certificate) -> None:
        self._insert("certificates", asdict(certificate))

    def list_certificates(self, student_id: str) -> list[Certificate]:
        rows = self._run("SELECT * FROM certificates WHERE student_id = ? ORDER BY awarded_at ASC", (student_id,))
        return [Certificate.from_row(r) for r in rows]

    def append_level_verification(self, verification: LevelVerification) -> None:
        data = asdict(verification)
        data["approved"] = int(verification.approved)
        self._insert("level_verifications", data)

    def list_level_verifications(self, student_id: str) -> list[LevelVerification]:
        rows = self._run(
            "SELECT * FROM level_verifications WHERE student_id = ? ORDER BY verified_at ASC",
            (student_id,),
        )
        return [LevelVerification.from_row(r) for r in rows]

    # ---------- events / rsvps / attendance ----------

    def put_event(self, event: Event) -> None:
        self._run(
            """
            INSERT INTO events(id, title, description, date, location, session_code, created_by, created_at)
            VALUES(?,?,?,?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET title=excluded.title, description=excluded.description,
                date=excluded.date, location=excluded.location, session_code=excluded.session_code
            """,
            (event.id, event.title, event.description, event.date, event.location,
             event.session_code, event.created_by, event.created_at),
        )

    def get_event(self, event_id: str) -> Event | None:
        rows = self._run("SELECT * FROM events WHERE id = ?", (event_id,))
        return Event.from_row(rows[0]) if rows else None

    def find_event_by_session_code(self, session_code: str) -> Event | None:
        rows = self._run("SELECT * FROM events WHERE session_code = ? ORDER BY date DESC LIMIT 1", (session_code,))
        return Event.from_row(rows[0]) if rows else None

    def delete_event(self, event_id: str) -> None:
        self._run("DELETE FROM events WHERE id = ?", (event_id,))

    def list_events(self) -> list[Event]:
        return [Event.from_row(r) for r in self._run("SELECT * FROM events ORDER BY date ASC")]

    def append_rsvp(self, rsvp: RSVP) -> None:
        self._insert("rsvps", asdict(rsvp))

    def delete_rsvp(self, user_id: str, event_id: str) -> None:
        self._run("DELETE FROM rsvps WHERE user_id = ? AND event_id = ?", (user_id, event_id))

    def find_rsvp(self, user_id: str, event_id: str) -> RSVP | None:
        rows = self._run("SELECT * FROM rsvps WHERE user_id = ? AND event_id = ?", (user_id, event_id))
        return RSVP.from_row(rows[0]) if rows else None

    def list_rsvps(self, user_id: str | None = None, event_id: str | None = None) -> list[RSVP]:
        sql = "SELECT * FROM rsvps WHERE 1=1"
        params = []
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        if event_id:
            sql += " AND event_id = ?"
            params.append(event_id)
        sql += " ORDER BY rsvped_at DESC"
        return [RSVP.from_row(r) for r in self._run(sql, tuple(params))]

    def append_attendance(self, attendance: Attendance) -> None:
        self._insert("attendance", asdict(attendance))

    def list_attendance(self, user_id: str | None = None, event_id: str | None = None) -> list[Attendance]:
        sql = "SELECT * FROM attendance WHERE 1=1"
        params = []
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        if event_id:
            sql += " AND event_id = ?"
            params.append(event_id)
        sql += " ORDER BY checked_in_at DESC"
        return [Attendance.from_row(r) for r in self._run(sql, tuple(params))]

    # ---------- assessments ----------

    def put_assessment(self, assessment: Assessment) -> None:
        self._insert("assessments", assessment.to_row())

    def get_assessment(self, assessment_id: str) -> Assessment | None:
        rows = self._run("SELECT * FROM assessments WHERE id = ?", (assessment_id,))
        return Assessment.from_row(rows[0]) if rows else None

    def list_assessments(self, level: int | None = None) -> list[Assessment]:
        if level is None:
            rows = self._run("SELECT * FROM assessments ORDER BY created_at DESC")
        else:
            rows = self._run("SELECT * FROM assessments WHERE level = ? ORDER BY created_at DESC", (level,))
        return [Assessment.from_row(r) for r in rows]

    def append_submission(self, submission: Submission) -> None:
        self._insert("submissions", submission.to_row())

    def list_submissions(self, user_id: str | None = None, assessment_id: str | None = None) -> list[Submission]:
        sql = "SELECT * FROM submissions WHERE 1=1"
        params = []
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        if assessment_id:
            sql += " AND assessment_id = ?"
            params.append(assessment_id)
        sql += " ORDER BY submitted_at DESC"
        return [Submission.from_row(r) for r in self._run(sql, tuple(params))]

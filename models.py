"""
models.py
Domain records (frozen dataclasses), club constants and row conversion.

Rows coming back from SQLite are converted here, so defaulting and
validation happen once at the storage boundary instead of at every read site.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass

from errors import InvalidInput

ROLES = ("student", "tutor", "committee", "admin")
VERIFICATION_STATUSES = ("pending", "approved", "rejected")
# Roles that need an admin to approve them after signup
ROLES_NEEDING_VERIFICATION = ("tutor", "committee")

MIN_LEVEL = 1
MAX_LEVEL = 5

# One semester of membership per payment
MEMBERSHIP_MONTHS = 4

PASS_THRESHOLD = 60

PAYMENT_METHODS = ("cash", "card", "transfer")

ATTENDANCE_TYPES = ("event", "class")

# Class code -> (level, name)
CLASSES = {
    "HYB01": (1, "Level 1 - Beginner"),
    "HYB02": (2, "Level 2 - Elementary"),
    "HYB03": (3, "Level 3 - Intermediate"),
    "HYB04": (4, "Level 4 - Upper Intermediate"),
    "HYB05": (5, "Level 5 - Advanced"),
}


def check_level(level, field: str = "level") -> int:
    if isinstance(level, bool) or not isinstance(level, int):
        raise InvalidInput(f"{field} must be an integer, got {level!r}")
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise InvalidInput(f"{field} must be between {MIN_LEVEL} and {MAX_LEVEL}, got {level}")
    return level


def check_grade(grade) -> float:
    if isinstance(grade, bool) or not isinstance(grade, (int, float)):
        raise InvalidInput(f"grade must be numeric, got {grade!r}")
    if not 0 <= grade <= 100:
        raise InvalidInput(f"grade must be between 0 and 100, got {grade}")
    return grade


def check_role(role: str) -> str:
    if role not in ROLES:
        raise InvalidInput(f"Unknown role: {role!r}")
    return role


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    name: str
    role: str
    membership_level: int = MIN_LEVEL
    membership_expiry: str | None = None
    membership_active: bool = False
    verified: bool = True
    verification_status: str = "approved"
    assigned_class: str | None = None  # tutors only
    assigned_level: int | None = None
    created_at: str = ""

    def __post_init__(self):
        check_role(self.role)
        check_level(self.membership_level, "membership_level")
        if self.verification_status not in VERIFICATION_STATUSES:
            raise InvalidInput(f"Unknown verification status: {self.verification_status!r}")
        if self.assigned_class is not None and self.role != "tutor":
            raise InvalidInput("Only tutors can have an assigned class")

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UserProfile":
        verified = bool(row["verified"])
        return cls(
            id=row["id"],
            email=row["email"] or "",
            name=row["name"] or "",
            role=row["role"],
            membership_level=row["membership_level"] if row["membership_level"] is not None else MIN_LEVEL,
            membership_expiry=row["membership_expiry"],
            membership_active=bool(row["membership_active"]),
            verified=verified,
            verification_status=row["verification_status"] or ("approved" if verified else "pending"),
            assigned_class=row["assigned_class"],
            assigned_level=row["assigned_level"],
            created_at=row["created_at"] or "",
        )


@dataclass(frozen=True)
class PaymentDetails:
    amount: float
    payment_method: str
    reference_number: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Payment:
    id: str
    user_id: str
    amount: float
    level: int  # level at time of payment
    payment_method: str
    reference_number: str | None
    status: str
    paid_at: str
    payer_name: str | None = None
    payer_email: str | None = None
    payer_phone: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Payment":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass(frozen=True)
class Grade:
    id: str
    student_id: str
    assessment_type: str
    grade: float
    level: int
    graded_by: str
    graded_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Grade":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass(frozen=True)
class Certificate:
    id: str
    student_id: str
    level: int  # the level just completed
    title: str
    description: str
    awarded_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Certificate":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass(frozen=True)
class LevelVerification:
    id: str
    student_id: str
    from_level: int
    to_level: int
    approved: bool
    tutor_id: str
    tutor_notes: str
    verified_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LevelVerification":
        data = {k: row[k] for k in row.keys()}
        data["approved"] = bool(data["approved"])
        return cls(**data)


@dataclass(frozen=True)
class GradeStats:
    average: float
    pass_rate: float  # percent
    count: int


@dataclass(frozen=True)
class LevelUpResult:
    success: bool
    message: str
    new_level: int | None = None


@dataclass(frozen=True)
class Event:
    id: str
    title: str
    description: str
    date: str
    location: str
    session_code: str | None
    created_by: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Event":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass(frozen=True)
class RSVP:
    id: str
    user_id: str
    event_id: str
    rsvped_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "RSVP":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass(frozen=True)
class Attendance:
    id: str
    user_id: str
    event_id: str | None
    event_title: str | None
    session_code: str | None
    class_name: str | None
    type: str  # 'event' or 'class'
    checked_in_at: str

    def __post_init__(self):
        if self.type not in ATTENDANCE_TYPES:
            raise InvalidInput(f"Unknown attendance type: {self.type!r}")

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Attendance":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass(frozen=True)
class Question:
    prompt: str
    options: tuple[str, ...]
    correct_index: int

    def __post_init__(self):
        if not self.prompt.strip():
            raise InvalidInput("Question prompt is required.")
        if len(self.options) < 2:
            raise InvalidInput("A question needs at least two options.")
        if not 0 <= self.correct_index < len(self.options):
            raise InvalidInput(f"correct_index {self.correct_index} is out of range")


@dataclass(frozen=True)
class Assessment:
    id: str
    title: str
    level: int
    assessment_type: str
    questions: tuple[Question, ...]
    created_by: str
    created_at: str

    def __post_init__(self):
        check_level(self.level)
        if not self.questions:
            raise InvalidInput("An assessment needs at least one question.")

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "level": self.level,
            "assessment_type": self.assessment_type,
            "questions": json.dumps([
                {"prompt": q.prompt, "options": list(q.options), "correct_index": q.correct_index}
                for q in self.questions
            ]),
            "created_by": self.created_by,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Assessment":
        data = {k: row[k] for k in row.keys()}
        data["questions"] = tuple(
            Question(q["prompt"], tuple(q["options"]), q["correct_index"])
            for q in json.loads(data["questions"])
        )
        return cls(**data)


@dataclass(frozen=True)
class Submission:
    id: str
    assessment_id: str
    user_id: str
    answers: tuple[int, ...]  # selected option index per question
    score: float  # percent correct
    submitted_at: str

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "user_id": self.user_id,
            "answers": json.dumps(list(self.answers)),
            "score": self.score,
            "submitted_at": self.submitted_at,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Submission":
        data = {k: row[k] for k in row.keys()}
        data["answers"] = tuple(json.loads(data["answers"]))
        return cls(**data)

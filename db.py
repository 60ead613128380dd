"""
db.py
SQLite helpers + initialization (creates DB/tables) + startup health check.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


def connect(db_file: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_file, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_conn(db_file: Path | str):
    conn = connect(db_file)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(db_file: Path | str, sql: str, params: tuple = ()) -> int:
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(db_file: Path | str, sql: str, params: tuple = ()):
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(db_file: Path | str, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


SCHEMA = """
CREATE TABLE IF NOT EXISTS user_profiles (
    id TEXT PRIMARY KEY,
    email TEXT,
    name TEXT,
    role TEXT NOT NULL CHECK(role IN ('student','tutor','committee','admin')),
    membership_level INTEGER CHECK(membership_level BETWEEN 1 AND 5),
    membership_expiry TEXT,
    membership_active INTEGER NOT NULL DEFAULT 0,
    verified INTEGER NOT NULL DEFAULT 0,
    verification_status TEXT CHECK(verification_status IN ('pending','approved','rejected')),
    assigned_class TEXT,
    assigned_level INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS payments (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    amount REAL NOT NULL,
    level INTEGER NOT NULL,
    payment_method TEXT NOT NULL CHECK(payment_method IN ('cash','card','transfer')),
    reference_number TEXT,
    status TEXT NOT NULL,
    paid_at TEXT NOT NULL,
    payer_name TEXT,
    payer_email TEXT,
    payer_phone TEXT,
    FOREIGN KEY(user_id) REFERENCES user_profiles(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS grades (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL,
    assessment_type TEXT NOT NULL,
    grade REAL NOT NULL CHECK(grade BETWEEN 0 AND 100),
    level INTEGER NOT NULL CHECK(level BETWEEN 1 AND 5),
    graded_by TEXT NOT NULL,
    graded_at TEXT NOT NULL,
    FOREIGN KEY(student_id) REFERENCES user_profiles(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS certificates (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL,
    level INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    awarded_at TEXT NOT NULL,
    FOREIGN KEY(student_id) REFERENCES user_profiles(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS level_verifications (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL,
    from_level INTEGER NOT NULL,
    to_level INTEGER NOT NULL,
    approved INTEGER NOT NULL,
    tutor_id TEXT NOT NULL,
    tutor_notes TEXT NOT NULL DEFAULT '',
    verified_at TEXT NOT NULL,
    FOREIGN KEY(student_id) REFERENCES user_profiles(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL,
    location TEXT NOT NULL DEFAULT '',
    session_code TEXT,
    created_by TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS rsvps (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    event_id TEXT NOT NULL,
    rsvped_at TEXT NOT NULL,
    UNIQUE(user_id, event_id),
    FOREIGN KEY(event_id) REFERENCES events(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS attendance (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    event_id TEXT,
    event_title TEXT,
    session_code TEXT,
    class_name TEXT,
    type TEXT NOT NULL CHECK(type IN ('event','class')),
    checked_in_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS assessments (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    level INTEGER NOT NULL CHECK(level BETWEEN 1 AND 5),
    assessment_type TEXT NOT NULL,
    questions TEXT NOT NULL,  -- JSON list of {prompt, options, correct_index}
    created_by TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS submissions (
    id TEXT PRIMARY KEY,
    assessment_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    answers TEXT NOT NULL,
    score REAL NOT NULL,
    submitted_at TEXT NOT NULL,
    FOREIGN KEY(assessment_id) REFERENCES assessments(id) ON DELETE CASCADE,
    FOREIGN KEY(user_id) REFERENCES user_profiles(id) ON DELETE CASCADE
);
"""


def init_db(db_file: Path | str) -> None:
    with get_conn(db_file) as conn:
        conn.executescript(SCHEMA)


def check_setup(db_file: Path | str) -> bool:
    """
    Query the profile table once. Called at startup; the result is passed
    around in Settings.storage_ready.
    """
    try:
        fetch_one(db_file, "SELECT id FROM user_profiles LIMIT 1")
    except sqlite3.Error as e:
        logger.error("Database check failed: %s", e)
        return False
    return True

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import db
from assessments import AssessmentBook
from club import ClubActivities
from lifecycle import MembershipManager
from store import SQLiteStore


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_file(tmp_path):
    path = tmp_path / "club.db"
    db.init_db(path)
    return path


@pytest.fixture
def store(db_file):
    return SQLiteStore(db_file)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 31, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def manager(store, clock):
    return MembershipManager(store, clock=clock)


@pytest.fixture
def club(store, clock):
    return ClubActivities(store, clock=clock)


@pytest.fixture
def student(manager):
    return manager.create_profile("stu-1", "mei@club.test", "Mei Ling", "student")


@pytest.fixture
def tutor(manager):
    profile = manager.create_profile("tut-1", "lim@club.test", "Lim Wei", "tutor")
    return manager.verify_user(profile.id, True)


@pytest.fixture
def book(store, clock):
    return AssessmentBook(store, clock=clock)

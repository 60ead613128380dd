"""Tests for the SQLite store, startup configuration and report helpers."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

import config
import db
import utils
from errors import InvalidInput, StorageError
from models import Grade, PaymentDetails
from store import SQLiteStore


def insert_profile_row(db_file, **overrides):
    row = {
        "id": "p-1", "email": "a@club.test", "name": "A", "role": "student",
        "membership_level": 1, "verified": 1, "verification_status": None,
        "created_at": "2024-09-01T00:00:00+00:00",
    }
    row.update(overrides)
    db.execute(
        db_file,
        f"INSERT INTO user_profiles({', '.join(row)}) VALUES({', '.join('?' for _ in row)})",
        tuple(row.values()),
    )


class TestRowDefaults:
    def test_status_defaults_from_verified_flag(self, store, db_file):
        insert_profile_row(db_file, id="p-1", verified=1)
        insert_profile_row(db_file, id="p-2", role="tutor", verified=0)
        assert store.get_profile("p-1").verification_status == "approved"
        assert store.get_profile("p-2").verification_status == "pending"

    def test_missing_level_reads_as_one(self, store, db_file):
        insert_profile_row(db_file, membership_level=None)
        assert store.get_profile("p-1").membership_level == 1

    def test_class_on_non_tutor_rejected(self, store, db_file):
        db.execute(
            db_file,
            "INSERT INTO user_profiles(id, role, assigned_class, created_at) VALUES(?,?,?,?)",
            ("p-9", "student", "HYB01", "2024-09-01T00:00:00+00:00"),
        )
        with pytest.raises(InvalidInput):
            store.get_profile("p-9")

    def test_unknown_profile(self, store):
        assert store.get_profile("nobody") is None


class TestStorageErrors:
    def test_unreachable_database(self, tmp_path):
        store = SQLiteStore(tmp_path)  # a directory, not a database file
        with pytest.raises(StorageError):
            store.get_profile("p-1")
        with pytest.raises(StorageError):
            with store.transaction():
                pass

    def test_constraint_violation_surfaces(self, store):
        grade = Grade(
            id="g-1", student_id="missing", assessment_type="quiz", grade=80,
            level=1, graded_by="t-1", graded_at="2025-01-01T00:00:00+00:00",
        )
        with pytest.raises(StorageError):
            store.append_grade(grade)

    def test_transaction_rolls_back_on_error(self, store, db_file):
        insert_profile_row(db_file)
        with pytest.raises(RuntimeError):
            with store.transaction():
                db_profile = store.get_profile("p-1")
                store.put_profile(replace(db_profile, membership_level=4))
                raise RuntimeError("boom")
        assert store.get_profile("p-1").membership_level == 1

    def test_list_grades_filters_by_level(self, store, db_file):
        insert_profile_row(db_file)
        for i, level in enumerate([1, 1, 2]):
            store.append_grade(Grade(
                id=f"g-{i}", student_id="p-1", assessment_type="quiz", grade=70,
                level=level, graded_by="t-1", graded_at=f"2025-01-0{i + 1}T00:00:00+00:00",
            ))
        assert len(store.list_grades("p-1")) == 3
        assert [g.id for g in store.list_grades("p-1", 1)] == ["g-1", "g-0"]


class TestStartup:
    def test_check_setup(self, tmp_path):
        path = tmp_path / "fresh.db"
        assert db.check_setup(path) is False
        db.init_db(path)
        assert db.check_setup(path) is True

    def test_load_settings_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLUB_DB_FILE", str(tmp_path / "env.db"))
        monkeypatch.setenv("CLUB_LOG_LEVEL", "debug")
        settings = config.load_settings()
        assert settings.db_file == tmp_path / "env.db"
        assert settings.log_level == "DEBUG"
        assert settings.storage_ready is False

    def test_startup_marks_storage_ready(self, tmp_path):
        settings = config.startup(config.Settings(db_file=tmp_path / "club.db"))
        assert settings.storage_ready is True
        assert (tmp_path / "club.db").exists()


class TestUtils:
    @pytest.mark.parametrize("start, months, expected", [
        (datetime(2025, 1, 31, 8, tzinfo=timezone.utc), 1, datetime(2025, 2, 28, 8, tzinfo=timezone.utc)),
        (datetime(2024, 1, 31, tzinfo=timezone.utc), 1, datetime(2024, 2, 29, tzinfo=timezone.utc)),
        (datetime(2025, 10, 15, tzinfo=timezone.utc), 4, datetime(2026, 2, 15, tzinfo=timezone.utc)),
        (datetime(2025, 9, 30, tzinfo=timezone.utc), 4, datetime(2026, 1, 30, tzinfo=timezone.utc)),
    ])
    def test_add_months(self, start, months, expected):
        assert utils.add_months(start, months) == expected

    def test_membership_state(self):
        now = datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert utils.membership_state(None, False, now) == "inactive"
        assert utils.membership_state("2025-04-01T00:00:00+00:00", True, now) == "active"
        assert utils.membership_state("2025-02-01T00:00:00+00:00", True, now) == "expired"

    def test_validate_payment_inputs(self):
        assert utils.validate_payment_inputs("50", "", "card") == []
        assert utils.validate_payment_inputs("abc", "", "card") == ["Amount must be numeric."]
        assert utils.validate_payment_inputs("0", "", "transfer") == [
            "Amount must be > 0.",
            "Reference number is required for bank transfers.",
        ]
        assert utils.validate_payment_inputs("inf", "", "card") == ["Amount must be a finite number."]
        assert utils.validate_payment_inputs("nan", "", "card") == ["Amount must be a finite number."]

    def test_revenue_summary_by_month(self, manager, student, clock, db_file):
        manager.record_payment(student.id, PaymentDetails(amount=50, payment_method="cash"))
        clock.advance(days=40)
        manager.record_payment(student.id, PaymentDetails(amount=30, payment_method="card"))

        df = utils.revenue_summary_by_month(db_file)
        assert df["month"].tolist() == ["2025-03", "2025-01"]
        assert df["revenue"].tolist() == [30.0, 50.0]

    def test_revenue_summary_empty(self, db_file):
        assert utils.revenue_summary_by_month(db_file).empty

    def test_grade_summary_by_level(self, manager, student, tutor):
        for score, level in [(50, 1), (70, 1), (90, 2)]:
            manager.record_grade(student.id, "quiz", score, level, tutor.id)
        df = utils.grade_summary_by_level(manager.list_grades(student.id))
        rows = df.set_index("level").to_dict("index")
        assert rows[1]["average"] == 60.0
        assert rows[1]["passed"] == 1
        assert rows[2]["count"] == 1

    def test_records_to_csv(self, manager, student):
        csv = utils.records_to_csv_bytes(manager.list_profiles()).decode("utf-8")
        assert csv.splitlines()[0].startswith("id,email,name,role,membership_level")
        assert student.id in csv

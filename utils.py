"""
utils.py
Dates, ids, validation, exports, sample data.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import asdict
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pandas as pd

import db
from models import PASS_THRESHOLD, PaymentDetails


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(ts: datetime) -> str:
    return ts.isoformat(timespec="microseconds")


def parse_iso(ts: str) -> datetime:
    return datetime.fromisoformat(ts)


def generate_id() -> str:
    return uuid.uuid4().hex


def add_months(start: datetime, months: int) -> datetime:
    """
    Add calendar months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    Time of day and tzinfo are kept.
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return start.replace(year=y, month=m, day=day)


def membership_state(expiry_iso: str | None, active: bool, now: datetime) -> str:
    if not active or not expiry_iso:
        return "inactive"
    return "active" if parse_iso(expiry_iso) >= now else "expired"


def validate_payment_inputs(amount, reference_number: str, method: str) -> list[str]:
    errors: list[str] = []
    try:
        value = float(amount)
        if not math.isfinite(value):
            errors.append("Amount must be a finite number.")
        elif value <= 0:
            errors.append("Amount must be > 0.")
    except (TypeError, ValueError):
        errors.append("Amount must be numeric.")
    if method == "transfer" and not reference_number.strip():
        errors.append("Reference number is required for bank transfers.")
    return errors


def validate_event_inputs(title: str, event_date: str) -> list[str]:
    errors: list[str] = []
    if not title.strip():
        errors.append("Title is required.")
    try:
        date.fromisoformat(event_date)
    except ValueError:
        errors.append("Date must be a valid ISO date (YYYY-MM-DD).")
    return errors


def records_to_frame(records) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in records])


def records_to_csv_bytes(records) -> bytes:
    return records_to_frame(records).to_csv(index=False).encode("utf-8")


def revenue_summary_by_month(db_file: Path | str) -> pd.DataFrame:
    rows = db.fetch_all(
        db_file,
        """
        SELECT strftime('%Y-%m', paid_at) AS month, SUM(amount) AS revenue, COUNT(*) AS payments
        FROM payments
        GROUP BY strftime('%Y-%m', paid_at)
        ORDER BY month DESC
        """,
    )
    df = pd.DataFrame([dict(r) for r in rows])
    if df.empty:
        return pd.DataFrame(columns=["month", "revenue", "payments"])
    return df


def grade_summary_by_level(grades) -> pd.DataFrame:
    """Average and pass count per level, for the tutor's class overview."""
    df = records_to_frame(grades)
    if df.empty:
        return pd.DataFrame(columns=["level", "average", "passed", "count"])
    df["passed"] = df["grade"] >= PASS_THRESHOLD
    out = df.groupby("level").agg(average=("grade", "mean"), passed=("passed", "sum"), count=("grade", "size"))
    out["average"] = out["average"].round(1)
    return out.reset_index()


def insert_sample_data(manager, club) -> None:
    """
    Insert a small club: one admin, one tutor, three students, an event, payments and grades
    (safe to run multiple times: adds new rows each time).
    """
    suffix = generate_id()[:6]
    admin = manager.create_profile(f"admin-{suffix}", f"admin-{suffix}@club.test", "Club Admin", "admin")
    tutor = manager.create_profile(f"tutor-{suffix}", f"tutor-{suffix}@club.test", "Lim Wei", "tutor")
    manager.verify_user(tutor.id, True)
    manager.assign_class(tutor.id, "HYB01")

    students = [
        manager.create_profile(f"student{i}-{suffix}", f"s{i}-{suffix}@club.test", name, "student")
        for i, name in enumerate(["Aisyah Rahman", "Daniel Tan", "Priya Nair"], start=1)
    ]

    for s in students[:2]:
        manager.record_payment(s.id, PaymentDetails(amount=50.0, payment_method="card", name=s.name, email=s.email))

    for s, scores in zip(students, ([75, 82], [55, 61], [40])):
        for n, score in enumerate(scores, start=1):
            manager.record_grade(s.id, f"quiz {n}", score, 1, tutor.id)

    club.create_event(
        "Mid-Autumn Festival Night",
        "Lanterns, mooncakes and a calligraphy corner.",
        (date.today() + timedelta(days=10)).isoformat(),
        "Student Centre Hall B",
        admin.id,
        session_code=f"MAF-{suffix.upper()}",
    )

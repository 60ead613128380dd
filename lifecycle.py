"""
lifecycle.py
Membership lifecycle: payments, grades, tutor-gated level promotion,
and the admin-side profile operations.

Grading and promotion are separate steps on purpose. record_grade only
appends to the grade ledger; a level only advances when a tutor calls
verify_level_up at the end of the semester.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Callable

import utils
from errors import InvalidInput, ProfileNotFound, StudentNotFound
from models import (
    CLASSES,
    MAX_LEVEL,
    MEMBERSHIP_MONTHS,
    PASS_THRESHOLD,
    PAYMENT_METHODS,
    ROLES_NEEDING_VERIFICATION,
    Certificate,
    Grade,
    GradeStats,
    LevelUpResult,
    LevelVerification,
    Payment,
    PaymentDetails,
    UserProfile,
    check_grade,
    check_level,
    check_role,
)
from store import SQLiteStore

logger = logging.getLogger(__name__)


class MembershipManager:
    def __init__(self, store: SQLiteStore, clock: Callable[[], datetime] = utils.utc_now):
        self.store = store
        self.clock = clock

    def _require_profile(self, user_id: str, not_found=ProfileNotFound) -> UserProfile:
        profile = self.store.get_profile(user_id)
        if profile is None:
            raise not_found(user_id)
        return profile

    # ---------- profiles ----------

    def create_profile(self, user_id: str, email: str, name: str, role: str = "student") -> UserProfile:
        check_role(role)
        if not user_id:
            raise InvalidInput("User id is required.")
        verified = role not in ROLES_NEEDING_VERIFICATION
        profile = UserProfile(
            id=user_id,
            email=email.strip(),
            name=name.strip(),
            role=role,
            verified=verified,
            verification_status="approved" if verified else "pending",
            created_at=utils.to_iso(self.clock()),
        )
        with self.store.transaction():
            if self.store.get_profile(user_id) is not None:
                raise InvalidInput(f"Profile already exists: {user_id}")
            self.store.put_profile(profile)
        logger.info("Created %s profile %s", role, user_id)
        return profile

    def get_profile(self, user_id: str) -> UserProfile:
        return self._require_profile(user_id)

    def list_profiles(self, role: str | None = None) -> list[UserProfile]:
        return self.store.list_profiles(role)

    def update_role(self, user_id: str, role: str) -> UserProfile:
        check_role(role)
        with self.store.transaction():
            profile = self._require_profile(user_id)
            changes = {"role": role}
            if role != "tutor":
                changes.update(assigned_class=None, assigned_level=None)
            profile = replace(profile, **changes)
            self.store.put_profile(profile)
        logger.info("Role of %s set to %s", user_id, role)
        return profile

    def verify_user(self, user_id: str, approved: bool) -> UserProfile:
        with self.store.transaction():
            profile = self._require_profile(user_id)
            profile = replace(
                profile,
                verified=approved,
                verification_status="approved" if approved else "rejected",
            )
            self.store.put_profile(profile)
        logger.info("Verification of %s: %s", user_id, profile.verification_status)
        return profile

    def pending_verifications(self) -> list[UserProfile]:
        return [
            p for p in self.store.list_profiles()
            if p.role in ROLES_NEEDING_VERIFICATION and not p.verified
        ]

    def assign_class(self, tutor_id: str, class_code: str) -> UserProfile:
        if class_code not in CLASSES:
            raise InvalidInput(f"Unknown class: {class_code!r}")
        level, _name = CLASSES[class_code]
        with self.store.transaction():
            profile = self._require_profile(tutor_id)
            if profile.role != "tutor":
                raise InvalidInput("Classes can only be assigned to tutors.")
            profile = replace(profile, assigned_class=class_code, assigned_level=level)
            self.store.put_profile(profile)
        logger.info("Assigned class %s to tutor %s", class_code, tutor_id)
        return profile

    # ---------- payments ----------

    def record_payment(self, user_id: str, details: PaymentDetails) -> Payment:
        """
        Append a payment and activate membership for one semester from now.
        The payment carries the member's current level; the level itself is never changed here.
        """
        amount = details.amount
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount <= 0:
            raise InvalidInput(f"Amount must be a positive number, got {amount!r}")
        if details.payment_method not in PAYMENT_METHODS:
            raise InvalidInput(f"Unknown payment method: {details.payment_method!r}")

        now = self.clock()
        with self.store.transaction():
            profile = self._require_profile(user_id)
            payment = Payment(
                id=utils.generate_id(),
                user_id=user_id,
                amount=float(details.amount),
                level=profile.membership_level,
                payment_method=details.payment_method,
                reference_number=details.reference_number,
                status="completed",
                paid_at=utils.to_iso(now),
                payer_name=details.name,
                payer_email=details.email,
                payer_phone=details.phone,
            )
            self.store.append_payment(payment)
            expiry = utils.add_months(now, MEMBERSHIP_MONTHS)
            self.store.put_profile(
                replace(profile, membership_active=True, membership_expiry=utils.to_iso(expiry))
            )
        logger.info("Payment %s recorded for %s (level %d), membership until %s",
                    payment.id, user_id, payment.level, expiry.date())
        return payment

    def list_payments(self, user_id: str | None = None) -> list[Payment]:
        return self.store.list_payments(user_id)

    def expire_memberships(self) -> int:
        """Clear the active flag on memberships whose expiry has passed. Returns how many."""
        now_iso = utils.to_iso(self.clock())
        with self.store.transaction():
            expired = self.store.list_expired_active(now_iso)
            for profile in expired:
                self.store.put_profile(replace(profile, membership_active=False))
        if expired:
            logger.info("Expired %d memberships", len(expired))
        return len(expired)

    # ---------- grades ----------

    def record_grade(self, student_id: str, assessment_type: str, grade, level: int, tutor_id: str) -> Grade:
        check_grade(grade)
        check_level(level)
        if not assessment_type or not assessment_type.strip():
            raise InvalidInput("Assessment type is required.")
        if not tutor_id:
            raise InvalidInput("Grades must be recorded by a tutor.")

        record = Grade(
            id=utils.generate_id(),
            student_id=student_id,
            assessment_type=assessment_type.strip(),
            grade=grade,
            level=level,
            graded_by=tutor_id,
            graded_at=utils.to_iso(self.clock()),
        )
        with self.store.transaction():
            self._require_profile(student_id, StudentNotFound)
            self.store.append_grade(record)
        logger.info("Grade %s for %s at level %d by %s", grade, student_id, level, tutor_id)
        return record

    def list_grades(self, student_id: str, level: int | None = None) -> list[Grade]:
        return self.store.list_grades(student_id, level)

    def get_aggregate_grade_stats(self, student_id: str, level: int) -> GradeStats:
        check_level(level)
        grades = [g.grade for g in self.store.list_grades(student_id, level)]
        if not grades:
            return GradeStats(average=0, pass_rate=0, count=0)
        passed = sum(1 for g in grades if g >= PASS_THRESHOLD)
        return GradeStats(
            average=round(sum(grades) / len(grades), 1),
            pass_rate=round(passed / len(grades) * 100, 1),
            count=len(grades),
        )

    # ---------- level progression ----------

    def verify_level_up(self, student_id: str, approved: bool, tutor_id: str, notes: str | None = None) -> LevelUpResult:
        """
        Record a tutor's end-of-semester decision. This is the only place a level advances.

        approved and below the top level: promote, award a certificate for the level left,
        and log the verification. Rejected: log the verification only. Approved at the top
        level: nothing is written and an unsuccessful result is returned.
        """
        if not tutor_id:
            raise InvalidInput("Level verification requires a tutor.")

        now_iso = utils.to_iso(self.clock())
        with self.store.transaction():
            profile = self._require_profile(student_id, StudentNotFound)
            current = profile.membership_level

            if approved and current >= MAX_LEVEL:
                logger.info("Level-up for %s skipped: already at level %d", student_id, current)
                return LevelUpResult(success=False, message="Student is already at maximum level")

            new_level = current + 1 if approved else current
            if approved:
                self.store.put_profile(replace(profile, membership_level=new_level))
                self.store.append_certificate(Certificate(
                    id=utils.generate_id(),
                    student_id=student_id,
                    level=current,
                    title=f"Level {current} Certification",
                    description=f"Successfully completed Level {current} - Verified by tutor",
                    awarded_at=now_iso,
                ))
            self.store.append_level_verification(LevelVerification(
                id=utils.generate_id(),
                student_id=student_id,
                from_level=current,
                to_level=new_level,
                approved=approved,
                tutor_id=tutor_id,
                tutor_notes=notes or "",
                verified_at=now_iso,
            ))

        if approved:
            logger.info("Student %s promoted to level %d by %s", student_id, new_level, tutor_id)
            return LevelUpResult(success=True, new_level=new_level, message=f"Student promoted to Level {new_level}")
        logger.info("Student %s kept at level %d by %s", student_id, current, tutor_id)
        return LevelUpResult(success=True, new_level=current, message="Student remains at current level")

    def list_certificates(self, student_id: str) -> list[Certificate]:
        return self.store.list_certificates(student_id)

    def list_level_verifications(self, student_id: str) -> list[LevelVerification]:
        return self.store.list_level_verifications(student_id)

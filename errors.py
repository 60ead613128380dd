"""
errors.py
Error kinds raised by the membership services.
"""

from __future__ import annotations


class LifecycleError(Exception):
    """Base class for every error surfaced to callers."""


class ProfileNotFound(LifecycleError):
    label = "User profile"

    def __init__(self, user_id: str):
        super().__init__(f"{self.label} not found: {user_id}")
        self.user_id = user_id


class StudentNotFound(ProfileNotFound):
    label = "Student"


class EventNotFound(LifecycleError):
    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class AssessmentNotFound(LifecycleError):
    def __init__(self, assessment_id: str):
        super().__init__(f"Assessment not found: {assessment_id}")
        self.assessment_id = assessment_id


class InvalidInput(LifecycleError):
    """Rejected before any write is attempted."""


class StorageError(LifecycleError):
    """The underlying store is unavailable or refused the write."""

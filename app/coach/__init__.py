"""Coaching session: coach loop, step resolver and shot list."""

from app.coach.capture_coach import CaptureCoach, CoachStatus
from app.coach.coach_spec import coach_spec_for
from app.coach.step_sequence import CoachSession, StepSequence

__all__ = [
    "CaptureCoach",
    "CoachSession",
    "CoachStatus",
    "StepSequence",
    "coach_spec_for",
]

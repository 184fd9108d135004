"""Canonical enums for the plan builder.

All enums are string-based to ensure JSON serialization compatibility
with the setup/draft payloads exchanged with the application layer.
"""

from enum import StrEnum


# -----------------------------
# Setup dimensions
# -----------------------------
class WeekStart(StrEnum):
    """Calendar convention used for presenting a week."""

    MONDAY = "monday"
    SUNDAY = "sunday"


class RiskTolerance(StrEnum):
    """Coach-selected appetite for training load risk."""

    LOW = "low"
    MED = "med"
    HIGH = "high"


class DisciplineEmphasis(StrEnum):
    """Which discipline the plan leans on."""

    BALANCED = "balanced"
    SWIM = "swim"
    BIKE = "bike"
    RUN = "run"


# -----------------------------
# Session dimensions
# -----------------------------
class Discipline(StrEnum):
    SWIM = "swim"
    BIKE = "bike"
    RUN = "run"
    STRENGTH = "strength"
    REST = "rest"


class SessionType(StrEnum):
    """Canonical session types. Sessions may also carry free-text types."""

    ENDURANCE = "endurance"
    TEMPO = "tempo"
    THRESHOLD = "threshold"
    TECHNIQUE = "technique"
    RECOVERY = "recovery"
    STRENGTH = "strength"
    REST = "rest"


class IntensityCategory(StrEnum):
    """Coarse intensity bucket used to detect escalation."""

    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"


# -----------------------------
# Validation
# -----------------------------
class ViolationCode(StrEnum):
    OFF_DAY_SESSION = "OFF_DAY_SESSION"
    MAX_DOUBLES_EXCEEDED = "MAX_DOUBLES_EXCEEDED"
    MAX_INTENSITY_DAYS_EXCEEDED = "MAX_INTENSITY_DAYS_EXCEEDED"
    WEEKLY_MINUTES_OUT_OF_BOUNDS = "WEEKLY_MINUTES_OUT_OF_BOUNDS"
    BEGINNER_RUN_CAP_EXCEEDED = "BEGINNER_RUN_CAP_EXCEEDED"
    BEGINNER_BRICK_TOO_EARLY = "BEGINNER_BRICK_TOO_EARLY"


class Severity(StrEnum):
    HARD = "hard"
    SOFT = "soft"

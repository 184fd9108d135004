"""Pydantic models for draft plans and their validation results.

Models are immutable. JSON payloads use camelCase keys (weeksToEvent,
durationMinutes, ...) while Python code uses snake_case attributes; both
spellings are accepted on input.

Weeks and sessions are addressed by index: a session is identified by
"{week_index}:{ordinal}", never by object reference.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coachkit.plan_builder.enums import DisciplineEmphasis, RiskTolerance, Severity, ViolationCode, WeekStart


class CamelModel(BaseModel):
    """Immutable base model with camelCase JSON aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


def session_key(week_index: int, ordinal: int) -> str:
    """Build the stable identifier of a session inside a draft."""
    return f"{week_index}:{ordinal}"


class DraftPlanSetup(CamelModel):
    """Coach/athlete constraints that drive generation and validation.

    Numeric limits are not range-checked here: the generator clamps them and
    the validator reports what falls outside policy.
    """

    week_start: WeekStart = Field(default=WeekStart.MONDAY, description="Presentation week start")
    start_date: date | None = Field(default=None, description="Plan start (yyyy-mm-dd)")
    event_date: date | None = Field(default=None, description="Event/completion date (yyyy-mm-dd)")
    weeks_to_event: int | None = Field(default=None, description="Explicit plan length in weeks")
    weeks_to_event_override: int | None = Field(default=None, description="Coach override; always wins")
    weekly_availability_days: list[int] = Field(default_factory=list, description="Available weekdays, 0=Sun..6=Sat")
    weekly_availability_minutes: int | dict[str, int] = Field(
        default=0,
        description="Weekly minutes budget, or a map of weekday -> minutes",
    )
    weekly_minutes_by_week: list[int] | None = Field(default=None, description="Optional per-week minute targets")
    discipline_emphasis: DisciplineEmphasis = DisciplineEmphasis.BALANCED
    risk_tolerance: RiskTolerance = RiskTolerance.MED
    max_intensity_days_per_week: int = 1
    max_doubles_per_week: int = 0
    long_session_day: int | None = None
    coach_guidance_text: str | None = None
    policy_profile_id: str | None = None
    policy_profile_version: str | None = None
    recovery_every_n_weeks: int | None = None
    recovery_week_multiplier: float | None = None
    sessions_per_week_override: int | None = None


class DraftSession(CamelModel):
    week_index: int = Field(..., ge=0)
    ordinal: int = Field(..., ge=0, description="Stable within-week order")
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday..6=Saturday, convention independent")
    discipline: str
    type: str
    duration_minutes: int = Field(..., ge=0)
    notes: str | None = None
    locked: bool = False

    @property
    def session_id(self) -> str:
        return session_key(self.week_index, self.ordinal)


class DraftWeek(CamelModel):
    week_index: int = Field(..., ge=0)
    locked: bool = False
    sessions: list[DraftSession] = Field(default_factory=list)

    @property
    def total_minutes(self) -> int:
        return sum(s.duration_minutes for s in self.sessions)


class DraftPlan(CamelModel):
    """Versioned, not-yet-published multi-week schedule."""

    version: Literal["v1"] = "v1"
    setup: DraftPlanSetup
    weeks: list[DraftWeek] = Field(default_factory=list)

    def iter_sessions(self):
        """Yield every session in week order, then ordinal order."""
        for week in self.weeks:
            yield from week.sessions

    def find_session(self, session_id: str) -> DraftSession | None:
        for session in self.iter_sessions():
            if session.session_id == session_id:
                return session
        return None


class Violation(CamelModel):
    """A rule breach found by the validator. Returned as data, never raised."""

    code: ViolationCode
    severity: Severity
    message: str
    week_index: int
    session_id: str | None = None


class QualityGateResult(CamelModel):
    """Violations split by severity, tagged with the policy profile used."""

    profile_id: str
    profile_version: str
    hard_violations: list[Violation] = Field(default_factory=list)
    soft_warnings: list[Violation] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100)

    @property
    def passed(self) -> bool:
        return not self.hard_violations

"""Plan diff model and applier.

Diff operations are the only mutation vocabulary between a proposal and an
applied plan. A diff is a closed, tagged union keyed by `op`:

- UPDATE_SESSION: patch discipline/type/duration/notes of one session
- REMOVE_SESSION: drop one session
- SWAP_SESSION_TYPE: change a session's type (optionally checking the old one)
- ADJUST_WEEK_VOLUME: scale every unlocked session of a week by 1 + pct_delta
- ADD_NOTE: append a note to a session, or to every unlocked session of a week

Sessions are addressed by "{week_index}:{ordinal}". Applying a diff is pure
and whole: either every op applies or DiffApplicationError is raised and no
result is produced.
"""

from typing import Annotated, Any, Literal, assert_never

from pydantic import ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from coachkit.plan_builder.duration_rounding import round_half_up
from coachkit.plan_builder.errors import DiffApplicationError, InvalidPlanDiffError
from coachkit.plan_builder.models import CamelModel, DraftPlan, DraftSession, DraftWeek
from coachkit.plan_builder.observability import EngineStage, log_stage_event


class _OpModel(CamelModel):
    model_config = ConfigDict(extra="forbid")


class SessionPatch(_OpModel):
    discipline: str | None = Field(default=None, min_length=1)
    type: str | None = Field(default=None, min_length=1)
    duration_minutes: int | None = Field(default=None, ge=0, le=10_000)
    notes: str | None = Field(default=None, max_length=10_000)

    @property
    def changes_content(self) -> bool:
        return bool(self.model_fields_set & {"discipline", "type", "duration_minutes", "notes"})


class UpdateSessionOp(_OpModel):
    op: Literal["UPDATE_SESSION"] = "UPDATE_SESSION"
    draft_session_id: str = Field(..., min_length=1)
    patch: SessionPatch


class RemoveSessionOp(_OpModel):
    op: Literal["REMOVE_SESSION"] = "REMOVE_SESSION"
    draft_session_id: str = Field(..., min_length=1)


class SwapSessionTypeOp(_OpModel):
    op: Literal["SWAP_SESSION_TYPE"] = "SWAP_SESSION_TYPE"
    draft_session_id: str = Field(..., min_length=1)
    old_type: str | None = None
    new_type: str = Field(..., min_length=1)


class AdjustWeekVolumeOp(_OpModel):
    op: Literal["ADJUST_WEEK_VOLUME"] = "ADJUST_WEEK_VOLUME"
    week_index: int = Field(..., ge=0, le=52)
    pct_delta: float = Field(..., ge=-0.9, le=1.0, description="Signed fraction, -0.1 = -10%")


class AddNoteOp(_OpModel):
    op: Literal["ADD_NOTE"] = "ADD_NOTE"
    target: Literal["session", "week"]
    draft_session_id: str | None = None
    week_index: int | None = Field(default=None, ge=0, le=52)
    text: str = Field(..., min_length=1, max_length=10_000)

    @model_validator(mode="after")
    def validate_target(self) -> "AddNoteOp":
        if not self.text.strip():
            raise ValueError("Note text must not be blank")
        if self.target == "session" and not self.draft_session_id:
            raise ValueError("Session notes require draft_session_id")
        if self.target == "week" and self.week_index is None:
            raise ValueError("Week notes require week_index")
        return self


DiffOp = Annotated[
    UpdateSessionOp | RemoveSessionOp | SwapSessionTypeOp | AdjustWeekVolumeOp | AddNoteOp,
    Field(discriminator="op"),
]

_PLAN_DIFF_ADAPTER = TypeAdapter(list[DiffOp])


def parse_plan_diff(payload: Any) -> list[DiffOp]:
    """Parse a JSON-shaped list of diff operations.

    Raises:
        InvalidPlanDiffError: If the payload is not a list of known ops
    """
    try:
        return _PLAN_DIFF_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise InvalidPlanDiffError(f"Invalid plan diff: {e}") from e


def dump_plan_diff(diff: list[DiffOp]) -> list[dict[str, Any]]:
    return _PLAN_DIFF_ADAPTER.dump_python(diff, mode="json", by_alias=True, exclude_none=True)


def parse_session_id(session_id: str) -> tuple[int, int] | None:
    """Split "{week_index}:{ordinal}" into its parts, None when malformed."""
    week, sep, ordinal = session_id.partition(":")
    if not sep or not week.isdigit() or not ordinal.isdigit():
        return None
    return int(week), int(ordinal)


class SessionSnapshot(CamelModel):
    """Read-only view of a session as seen by the hard-safety engine."""

    id: str
    week_index: int
    ordinal: int
    day_of_week: int
    discipline: str
    type: str
    duration_minutes: int
    locked: bool = False


def session_snapshots(draft: DraftPlan) -> list[SessionSnapshot]:
    return [
        SessionSnapshot(
            id=s.session_id,
            week_index=s.week_index,
            ordinal=s.ordinal,
            day_of_week=s.day_of_week,
            discipline=s.discipline,
            type=s.type,
            duration_minutes=s.duration_minutes,
            locked=s.locked,
        )
        for s in draft.iter_sessions()
    ]


def _append_note(existing: str | None, text: str) -> str | None:
    trimmed = text.strip()
    if not trimmed:
        return existing
    if not existing:
        return trimmed
    return f"{existing}\n\n{trimmed}"


class _WorkingPlan:
    """Mutable working copy of a draft's weeks used while applying a diff."""

    def __init__(self, draft: DraftPlan):
        self.weeks: dict[int, DraftWeek] = {w.week_index: w for w in draft.weeks}
        self.sessions: dict[int, list[DraftSession]] = {w.week_index: list(w.sessions) for w in draft.weeks}

    def week(self, week_index: int) -> DraftWeek:
        week = self.weeks.get(week_index)
        if week is None:
            raise DiffApplicationError("NOT_FOUND", "Draft week not found.", {"weekIndex": week_index})
        if week.locked:
            raise DiffApplicationError(
                "WEEK_LOCKED",
                "Week is locked and sessions cannot be modified.",
                {"weekIndex": week_index},
            )
        return week

    def locate(self, session_id: str) -> tuple[int, int]:
        parsed = parse_session_id(session_id)
        if parsed is not None and parsed[0] in self.sessions:
            for pos, session in enumerate(self.sessions[parsed[0]]):
                if session.session_id == session_id:
                    self.week(parsed[0])
                    return parsed[0], pos
        raise DiffApplicationError("NOT_FOUND", "Draft session not found.", {"draftSessionId": session_id})

    def replace(self, week_index: int, pos: int, **changes: Any) -> None:
        self.sessions[week_index][pos] = self.sessions[week_index][pos].model_copy(update=changes)

    def build(self, draft: DraftPlan) -> DraftPlan:
        weeks = [
            w.model_copy(update={"sessions": self.sessions[w.week_index]})
            for w in draft.weeks
        ]
        return draft.model_copy(update={"weeks": weeks})


def _locked_error(session_id: str) -> DiffApplicationError:
    return DiffApplicationError(
        "SESSION_LOCKED",
        "Session is locked and cannot be edited.",
        {"draftSessionId": session_id},
    )


def _apply_op(plan: _WorkingPlan, op: DiffOp) -> None:
    if isinstance(op, UpdateSessionOp):
        week_index, pos = plan.locate(op.draft_session_id)
        session = plan.sessions[week_index][pos]
        if session.locked and op.patch.changes_content:
            raise _locked_error(op.draft_session_id)
        changes = {field: getattr(op.patch, field) for field in op.patch.model_fields_set}
        if changes.get("discipline") is None:
            changes.pop("discipline", None)
        if changes.get("type") is None:
            changes.pop("type", None)
        if changes.get("duration_minutes") is None:
            changes.pop("duration_minutes", None)
        plan.replace(week_index, pos, **changes)
    elif isinstance(op, RemoveSessionOp):
        week_index, pos = plan.locate(op.draft_session_id)
        if plan.sessions[week_index][pos].locked:
            raise _locked_error(op.draft_session_id)
        del plan.sessions[week_index][pos]
    elif isinstance(op, SwapSessionTypeOp):
        week_index, pos = plan.locate(op.draft_session_id)
        session = plan.sessions[week_index][pos]
        if session.locked:
            raise _locked_error(op.draft_session_id)
        if op.old_type is not None and op.old_type != session.type:
            raise DiffApplicationError(
                "STALE_SWAP",
                f"Session type is '{session.type}', expected '{op.old_type}'.",
                {"draftSessionId": op.draft_session_id},
            )
        plan.replace(week_index, pos, type=op.new_type)
    elif isinstance(op, AdjustWeekVolumeOp):
        plan.week(op.week_index)
        factor = 1 + op.pct_delta
        for pos, session in enumerate(plan.sessions[op.week_index]):
            if session.locked:
                continue
            plan.replace(op.week_index, pos, duration_minutes=max(0, round_half_up(session.duration_minutes * factor)))
    elif isinstance(op, AddNoteOp):
        if op.target == "session":
            week_index, pos = plan.locate(op.draft_session_id or "")
            session = plan.sessions[week_index][pos]
            if session.locked:
                raise _locked_error(session.session_id)
            plan.replace(week_index, pos, notes=_append_note(session.notes, op.text))
        else:
            week_index = op.week_index if op.week_index is not None else -1
            plan.week(week_index)
            for pos, session in enumerate(plan.sessions[week_index]):
                if not session.locked:
                    plan.replace(week_index, pos, notes=_append_note(session.notes, op.text))
    else:
        assert_never(op)


def apply_plan_diff(draft: DraftPlan, diff: list[DiffOp]) -> DraftPlan:
    """Apply a diff to a draft, in order, as a whole.

    Args:
        draft: Draft to modify (left untouched)
        diff: Operations to apply

    Returns:
        New DraftPlan with every op applied

    Raises:
        DiffApplicationError: On the first op that cannot be applied
            (NOT_FOUND, SESSION_LOCKED, WEEK_LOCKED, STALE_SWAP)
    """
    plan = _WorkingPlan(draft)
    for op in diff:
        try:
            _apply_op(plan, op)
        except DiffApplicationError as e:
            log_stage_event(EngineStage.APPLY, "fail", meta={"code": e.code, "op": op.op})
            raise

    log_stage_event(EngineStage.APPLY, "success", meta={"ops": len(diff)})
    return plan.build(draft)

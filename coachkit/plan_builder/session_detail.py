"""Session detail structure and duration reflow.

A session detail breaks one session into typed blocks (warmup, main,
cooldown, drill, strength). When a session's duration changes, the block
durations are reflowed to the new total:

- every block duration is a multiple of 5 minutes; a sub-5 remainder of a
  total that is not a multiple of 5 goes to the main block
- block durations sum exactly to the requested total
- warmup stays within 5-20 min, cooldown within 5-15 min, main >= 10 min
  whenever the total allows it
- every other field (objective, steps, intensity, explainability, variants)
  is carried over unchanged
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import ConfigDict, Field, StringConstraints, ValidationError, model_validator

from coachkit.plan_builder.duration_rounding import round_half_up
from coachkit.plan_builder.errors import InvalidSessionDetailError
from coachkit.plan_builder.models import CamelModel
from coachkit.plan_builder.observability import log_event

STEP_MINUTES = 5
MAX_TOTAL_MINUTES = 10_000

WARMUP_BOUNDS = (5, 20)
COOLDOWN_BOUNDS = (5, 15)
MIN_MAIN_MINUTES = 10

# Below this total, warmup and cooldown shrink to 5 minutes each
COMPACT_TOTAL_MINUTES = 30
# Below this total, the main block takes everything
MAIN_ONLY_TOTAL_MINUTES = 20


class BlockType(StrEnum):
    WARMUP = "warmup"
    MAIN = "main"
    COOLDOWN = "cooldown"
    DRILL = "drill"
    STRENGTH = "strength"


class _StrictModel(CamelModel):
    model_config = ConfigDict(extra="forbid")


class SessionIntensity(_StrictModel):
    rpe: float | None = Field(default=None, ge=1, le=10)
    zone: Literal["Z1", "Z2", "Z3", "Z4", "Z5"] | None = None
    notes: str | None = Field(default=None, min_length=1, max_length=200)


class SessionBlock(_StrictModel):
    block_type: BlockType
    duration_minutes: int | None = Field(default=None, ge=0, le=MAX_TOTAL_MINUTES)
    distance_meters: int | None = Field(default=None, ge=0, le=1_000_000)
    intensity: SessionIntensity | None = None
    steps: str = Field(..., min_length=1, max_length=1_000)


class SessionTargets(_StrictModel):
    primary_metric: Literal["RPE", "ZONE"]
    notes: str = Field(..., min_length=1, max_length=500)


class SessionExplainability(_StrictModel):
    """Coach-facing rationale attached to a session."""

    why_this: str = Field(..., min_length=1, max_length=400)
    why_today: str = Field(..., min_length=1, max_length=400)
    unlocks_next: str = Field(..., min_length=1, max_length=400)
    if_missed: str = Field(..., min_length=1, max_length=400)
    if_cooked: str = Field(..., min_length=1, max_length=400)


VariantLabel = Literal[
    "short-on-time",
    "standard",
    "longer-window",
    "trainer",
    "road",
    "heat-adjusted",
    "hills-adjusted",
    "fatigue-adjusted",
]


class SessionVariant(_StrictModel):
    """Alternative execution of the same session for a given situation."""

    label: VariantLabel
    when_to_use: str = Field(..., min_length=1, max_length=260)
    duration_minutes: int = Field(..., ge=5, le=MAX_TOTAL_MINUTES)
    adjustments: list[Annotated[str, StringConstraints(min_length=1, max_length=220)]] = Field(
        ..., min_length=1, max_length=5
    )


class SessionDetail(_StrictModel):
    """Structured breakdown of a single session."""

    objective: str = Field(..., min_length=1, max_length=240)
    purpose: str | None = Field(default=None, min_length=1, max_length=240)
    structure: list[SessionBlock] = Field(..., min_length=1, max_length=20)
    targets: SessionTargets
    cues: list[Annotated[str, StringConstraints(min_length=1, max_length=160)]] | None = Field(
        default=None, max_length=3
    )
    safety_notes: str | None = Field(default=None, min_length=1, max_length=800)
    explainability: SessionExplainability | None = None
    variants: list[SessionVariant] | None = Field(default=None, max_length=8)
    # Execution recipe produced upstream; carried through unchanged
    recipe_v2: dict[str, Any] | None = Field(default=None, alias="recipeV2")

    @model_validator(mode="after")
    def validate_structure(self) -> "SessionDetail":
        types = [b.block_type for b in self.structure]

        if types.count(BlockType.WARMUP) > 1:
            raise ValueError("Only one warmup block is allowed.")
        if types.count(BlockType.COOLDOWN) > 1:
            raise ValueError("Only one cooldown block is allowed.")

        main_like = [i for i, t in enumerate(types) if t in {BlockType.MAIN, BlockType.STRENGTH}]
        if not main_like:
            raise ValueError("Session structure must include at least one main or strength block.")
        first_main = main_like[0]

        if BlockType.WARMUP in types and types.index(BlockType.WARMUP) > first_main:
            raise ValueError("Warmup must appear before main work.")
        if BlockType.COOLDOWN in types:
            cooldown_idx = types.index(BlockType.COOLDOWN)
            if cooldown_idx < first_main:
                raise ValueError("Cooldown must appear after main work.")
            if any(t != BlockType.COOLDOWN for t in types[cooldown_idx + 1 :]):
                raise ValueError("No work blocks are allowed after cooldown.")

        if self.targets.primary_metric == "RPE" and not any(
            b.intensity is not None and b.intensity.rpe is not None for b in self.structure
        ):
            raise ValueError("RPE primary metric requires at least one block with RPE.")
        if self.targets.primary_metric == "ZONE" and not any(
            b.intensity is not None and b.intensity.zone is not None for b in self.structure
        ):
            raise ValueError("ZONE primary metric requires at least one block with zone.")

        return self

    @property
    def total_minutes(self) -> int:
        return sum(b.duration_minutes or 0 for b in self.structure)


def parse_session_detail(payload: dict[str, Any]) -> SessionDetail:
    """Parse and structurally validate a session detail payload.

    Raises:
        InvalidSessionDetailError: If the payload breaks a schema or structure rule
    """
    try:
        return SessionDetail.model_validate(payload)
    except ValidationError as e:
        raise InvalidSessionDetailError(f"Invalid session detail: {e}") from e


def _first_index(structure: list[SessionBlock], block_type: BlockType) -> int | None:
    for i, block in enumerate(structure):
        if block.block_type == block_type:
            return i
    return None


def _last_index(structure: list[SessionBlock], block_type: BlockType) -> int | None:
    for i in range(len(structure) - 1, -1, -1):
        if structure[i].block_type == block_type:
            return i
    return None


def _main_index(structure: list[SessionBlock]) -> int:
    for block_type in (BlockType.MAIN, BlockType.STRENGTH):
        idx = _first_index(structure, block_type)
        if idx is not None:
            return idx
    for i, block in enumerate(structure):
        if block.block_type not in {BlockType.WARMUP, BlockType.COOLDOWN}:
            return i
    return 0


def _round_to_step(minutes: float) -> int:
    return round_half_up(minutes / STEP_MINUTES) * STEP_MINUTES


def _with_durations(detail: SessionDetail, durations: list[int]) -> SessionDetail:
    structure = [
        block.model_copy(update={"duration_minutes": minutes if minutes > 0 else None})
        for block, minutes in zip(detail.structure, durations, strict=True)
    ]
    return detail.model_copy(update={"structure": structure})


def _compact_durations(
    count: int,
    total: int,
    warmup_idx: int | None,
    cooldown_idx: int | None,
    main_idx: int,
) -> list[int]:
    durations = [0] * count
    if total < MAIN_ONLY_TOTAL_MINUTES:
        durations[main_idx] = total
        return durations

    fixed = 0
    for idx in (warmup_idx, cooldown_idx):
        if idx is not None:
            durations[idx] = STEP_MINUTES
            fixed += STEP_MINUTES
    durations[main_idx] = total - fixed
    return durations


def normalize_session_detail_durations_to_total(detail: SessionDetail, total_minutes: int) -> SessionDetail:
    """Snap block durations to 5-minute steps that sum exactly to total_minutes.

    Args:
        detail: Session detail to normalise
        total_minutes: Required total (clamped to 0..10000)

    Returns:
        New SessionDetail; blocks that end at zero minutes have no duration
    """
    total = max(0, min(MAX_TOTAL_MINUTES, total_minutes))
    structure = detail.structure
    warmup_idx = _first_index(structure, BlockType.WARMUP)
    cooldown_idx = _last_index(structure, BlockType.COOLDOWN)
    main_idx = _main_index(structure)

    if total == 0:
        return _with_durations(detail, [0] * len(structure))

    if total < COMPACT_TOTAL_MINUTES:
        return _with_durations(detail, _compact_durations(len(structure), total, warmup_idx, cooldown_idx, main_idx))

    # 1) Round explicit durations to 5 and apply per-type bounds
    durations = []
    for i, block in enumerate(structure):
        current = block.duration_minutes or 0
        if current <= 0:
            durations.append(0)
            continue
        minutes = max(STEP_MINUTES, _round_to_step(current))
        if i == warmup_idx:
            minutes = max(WARMUP_BOUNDS[0], min(WARMUP_BOUNDS[1], minutes))
        elif i == cooldown_idx:
            minutes = max(COOLDOWN_BOUNDS[0], min(COOLDOWN_BOUNDS[1], minutes))
        elif i == main_idx:
            minutes = max(MIN_MAIN_MINUTES, minutes)
        durations.append(minutes)

    # 2) Required blocks without a duration get a sensible default
    if warmup_idx is not None and durations[warmup_idx] <= 0:
        durations[warmup_idx] = 10
    if cooldown_idx is not None and durations[cooldown_idx] <= 0:
        durations[cooldown_idx] = 5
    if durations[main_idx] <= 0:
        durations[main_idx] = max(MIN_MAIN_MINUTES, _round_to_step(total - 15))

    # 3) Settle the residual, main first
    delta = total - sum(durations)

    while delta >= STEP_MINUTES:
        durations[main_idx] += STEP_MINUTES
        delta -= STEP_MINUTES

    def floor_for(idx: int) -> int:
        if idx == warmup_idx:
            return WARMUP_BOUNDS[0]
        if idx == cooldown_idx:
            return COOLDOWN_BOUNDS[0]
        if idx == main_idx:
            return MIN_MAIN_MINUTES
        return 0

    priority = [main_idx] + [i for i in (warmup_idx, cooldown_idx) if i is not None]
    priority += [i for i in range(len(durations)) if i not in priority]

    while delta < 0:
        picked = next((i for i in priority if durations[i] - STEP_MINUTES >= floor_for(i)), None)
        if picked is None:
            break
        durations[picked] -= STEP_MINUTES
        delta += STEP_MINUTES

    # Sub-5 remainder of a total that is not a multiple of 5
    durations[main_idx] += delta

    return _with_durations(detail, durations)


def reflow_session_detail_to_new_total(detail: SessionDetail, new_total_minutes: int) -> SessionDetail:
    """Scale block durations proportionally to a new session total.

    Durations are scaled, rounded to 5 minutes, then normalised so the
    residual lands on the main block first.
    """
    new_total = max(0, min(MAX_TOTAL_MINUTES, new_total_minutes))
    current_total = detail.total_minutes

    if current_total == 0 or current_total == new_total or new_total < COMPACT_TOTAL_MINUTES:
        result = normalize_session_detail_durations_to_total(detail, new_total)
    else:
        ratio = new_total / current_total
        scaled = [_round_to_step((block.duration_minutes or 0) * ratio) for block in detail.structure]
        result = normalize_session_detail_durations_to_total(_with_durations(detail, scaled), new_total)

    log_event("session_detail_reflowed", from_minutes=current_total, to_minutes=new_total)
    return result

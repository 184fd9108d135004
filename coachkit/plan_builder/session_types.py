"""Session type classification shared by the generator, validator and safety engine."""

import re

from coachkit.plan_builder.enums import IntensityCategory, SessionType

# Free-text session types that count as quality work
_QUALITY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\btempo\b", re.IGNORECASE),
    re.compile(r"\bthreshold\b", re.IGNORECASE),
    re.compile(r"\bvo2", re.IGNORECASE),
    re.compile(r"\binterval", re.IGNORECASE),
    re.compile(r"\bhill", re.IGNORECASE),
    re.compile(r"\brace[\s_-]?pace\b", re.IGNORECASE),
)

_HARD_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bthreshold\b", re.IGNORECASE),
    re.compile(r"\bvo2", re.IGNORECASE),
    re.compile(r"\binterval", re.IGNORECASE),
    re.compile(r"\bhill", re.IGNORECASE),
    re.compile(r"\brace[\s_-]?pace\b", re.IGNORECASE),
)

_BRICK_PATTERN = re.compile(r"\bbrick\b", re.IGNORECASE)

INTENSITY_TYPES: frozenset[str] = frozenset({SessionType.TEMPO, SessionType.THRESHOLD})


def is_intensity_type(session_type: str | None) -> bool:
    """Whether a session type counts toward the weekly intensity-day limit."""
    if not session_type:
        return False
    normalized = session_type.strip().lower()
    if normalized in INTENSITY_TYPES:
        return True
    return any(p.search(normalized) for p in _QUALITY_PATTERNS)


def intensity_category(session_type: str | None) -> IntensityCategory:
    """Map a session type to a coarse intensity bucket.

    Unknown types are treated as easy.
    """
    if not session_type:
        return IntensityCategory.EASY
    normalized = session_type.strip().lower()
    if any(p.search(normalized) for p in _HARD_PATTERNS):
        return IntensityCategory.HARD
    if normalized == SessionType.TEMPO or re.search(r"\btempo\b", normalized):
        return IntensityCategory.MODERATE
    return IntensityCategory.EASY


_CATEGORY_RANK: dict[IntensityCategory, int] = {
    IntensityCategory.EASY: 0,
    IntensityCategory.MODERATE: 1,
    IntensityCategory.HARD: 2,
}


def is_escalation(old_type: str | None, new_type: str | None) -> bool:
    return _CATEGORY_RANK[intensity_category(new_type)] > _CATEGORY_RANK[intensity_category(old_type)]


def is_brick_session(session_type: str | None, notes: str | None) -> bool:
    return bool(_BRICK_PATTERN.search(session_type or "") or _BRICK_PATTERN.search(notes or ""))

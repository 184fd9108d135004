"""Concise summary of changes between two draft snapshots."""

from coachkit.adaptation.hard_safety import format_pct
from coachkit.plan_builder.models import DraftPlan, DraftSession

MAX_SUMMARY_LINES = 5


def _sessions_by_key(draft: DraftPlan) -> dict[tuple[int, int], DraftSession]:
    return {(s.week_index, s.ordinal): s for s in draft.iter_sessions()}


def _week_totals(draft: DraftPlan) -> dict[int, int]:
    return {w.week_index: w.total_minutes for w in draft.weeks}


def summarize_plan_changes(previous: DraftPlan, current: DraftPlan) -> str:
    """Describe what changed between two drafts in up to five bullet lines.

    Sessions are matched by (week_index, ordinal). Returns "No changes" when
    nothing differs.
    """
    before = _sessions_by_key(previous)
    after = _sessions_by_key(current)

    duration_changes = 0
    type_changes = 0
    added = 0
    removed = 0
    example_type_change: tuple[str, str] | None = None

    for key in sorted(set(before) | set(after)):
        old = before.get(key)
        new = after.get(key)
        if old is None:
            added += 1
            continue
        if new is None:
            removed += 1
            continue
        if old.duration_minutes != new.duration_minutes:
            duration_changes += 1
        if old.type != new.type:
            type_changes += 1
            if example_type_change is None:
                example_type_change = (old.type, new.type)

    totals_before = _week_totals(previous)
    totals_after = _week_totals(current)
    week_changes: list[tuple[int, float]] = []
    for week_index in sorted(set(totals_before) | set(totals_after)):
        old_total = totals_before.get(week_index, 0)
        new_total = totals_after.get(week_index, 0)
        if old_total == new_total:
            continue
        pct_delta = 1.0 if old_total == 0 else (new_total - old_total) / old_total
        week_changes.append((week_index, pct_delta))

    if not (duration_changes or type_changes or added or removed or week_changes):
        return "No changes"

    lines = []
    if duration_changes:
        lines.append(f"- {duration_changes} sessions updated (duration changes)")
    if type_changes:
        label = "changed" if type_changes == 1 else "changes"
        example = f" ({example_type_change[0]} → {example_type_change[1]})" if example_type_change else ""
        lines.append(f"- {type_changes} session type {label}{example}")
    if added:
        lines.append(f"- {added} sessions added")
    if removed:
        lines.append(f"- {removed} sessions removed")
    if week_changes:
        week_index, pct_delta = min(week_changes, key=lambda w: (-abs(w[1]), w[0]))
        lines.append(f"- Week {week_index + 1} total volume {format_pct(pct_delta)}")

    return "\n".join(lines[:MAX_SUMMARY_LINES])

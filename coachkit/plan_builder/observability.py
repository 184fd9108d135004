"""Observability helpers for the plan engine.

This module provides:
- Structured event logging
- Stage event logging (start/success/fail)
- Stage-level timing
"""

import time
from contextlib import contextmanager
from enum import StrEnum

from loguru import logger


class EngineStage(StrEnum):
    """Canonical engine stage enum."""

    GENERATE = "draft_generate"
    VALIDATE = "draft_validate"
    SAFETY = "proposal_safety"
    EXPLAIN = "proposal_explain"
    APPLY = "diff_apply"
    REFLOW = "session_reflow"


def log_event(
    event: str,
    **kwargs: str | int | float | bool | None,
) -> None:
    """Log a structured event.

    Standard events:
    - draft_generated: Draft plan created
    - draft_validated: Violations computed for a draft
    - proposal_reviewed: Hard-safety review finished
    - triggers_assessed: Trigger quality ranked

    Args:
        event: Event name (e.g., "engine_stage", "draft_generated")
        **kwargs: Additional structured fields to include in the log
    """
    logger.info(event, **kwargs)


def log_stage_event(
    stage: EngineStage,
    status: str,
    meta: dict[str, str | int | float | bool | None] | None = None,
) -> None:
    """Log a stage event (start/success/fail).

    Args:
        stage: Engine stage
        status: Event status ("start", "success", or "fail")
        meta: Optional metadata dictionary to include in log

    Raises:
        ValueError: If status is not one of the allowed values
    """
    allowed_statuses = {"start", "success", "fail"}
    if status not in allowed_statuses:
        raise ValueError(f"Status must be one of {allowed_statuses}, got: {status}")

    log_data: dict[str, str | int | float | bool | None] = {
        "stage": stage.value,
        "status": status,
    }

    if meta:
        log_data.update(meta)

    log_event("engine_stage", **log_data)


@contextmanager
def timing(metric_name: str):
    """Time the wrapped block and log the elapsed seconds.

    Args:
        metric_name: Metric name (e.g., "engine.generate")
    """
    start_time = time.monotonic()
    try:
        yield
    finally:
        elapsed = time.monotonic() - start_time
        log_event(
            "engine_timing",
            metric=metric_name,
            duration_seconds=round(elapsed, 6),
        )

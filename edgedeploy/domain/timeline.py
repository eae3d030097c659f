"""Stage timeline recording for deployment diagnostics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Mapping

StageTimeline = list[dict[str, object]]


def domain_record_stage_event(
    timeline: StageTimeline,
    stage: str,
    status: str,
    details: Mapping[str, Any] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, object]:
    """Append one stage event to a timeline and return it.

    Empty details are left out so JSON reports stay compact.

    Args:
        timeline: Ordered timeline the event is appended to.
        stage: Stage name (`validate`, `deploy`, `poll`, `smoke_test`).
        status: Status marker (`started`, `completed`, `failed`, a poll phase, ...).
        details: Optional structured details, copied into the event.
        clock: Optional provider of the current UTC time.

    Returns:
        dict[str, object]: The recorded event.
    """

    recorded_at = clock() if clock is not None else datetime.now(timezone.utc)
    event: dict[str, object] = {"stage": stage, "status": status, "at_utc": recorded_at.isoformat()}
    if details:
        event["details"] = dict(details)
    timeline.append(event)
    return event


def domain_timeline_stage_status(timeline: StageTimeline, stage: str) -> str | None:
    """Return the most recent status recorded for a stage.

    Args:
        timeline: Ordered stage timeline events.
        stage: Stage name to look up.

    Returns:
        str | None: Latest status for the stage, or None when it never ran.
    """

    for event in reversed(timeline):
        if event.get("stage") == stage:
            return str(event.get("status"))
    return None

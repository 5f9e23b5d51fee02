"""Pure aggregation of workflow executions into dashboard statistics."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from agent_insights.domain.date_window import DateWindow, start_of_day
from agent_insights.domain.executions import ExecutionRecord, ExecutionStatus
from agent_insights.domain.rates import percentage, round_half_away

# The n8n API cannot filter by date, so only the most recent page is aggregated.
# In-window executions older than this page are not counted.
EXECUTION_PAGE_LIMIT = 200
LAST_ERRORS_LIMIT = 5


@dataclass(frozen=True)
class BucketCount:
    """Execution count for one hour-of-day or calendar-date bucket."""

    key: str
    count: int


@dataclass(frozen=True)
class ExecutionErrorSummary:
    """Reduced view of one failed execution."""

    id: str
    timestamp: datetime
    workflow_id: str


@dataclass(frozen=True)
class WorkflowStats:
    """Aggregate statistics for executions inside one date window."""

    total: int
    successful: int
    failed: int
    running: int
    error_rate: float
    success_rate: float
    average_execution_time_ms: int
    average_execution_time_seconds: int
    executions_by_hour: list[BucketCount]
    executions_by_day: list[BucketCount]
    last_execution: ExecutionRecord | None
    last_errors: list[ExecutionErrorSummary]


def filter_in_window(
    executions: Iterable[ExecutionRecord],
    window: DateWindow,
) -> list[ExecutionRecord]:
    """Keep executions started inside the window, preserving API order."""

    return [execution for execution in executions if window.contains(execution.started_at)]


def average_execution_time_ms(executions: Iterable[ExecutionRecord]) -> float:
    """Return mean duration of finished successful executions, 0.0 when none."""

    durations = [
        duration
        for duration in (execution.duration_ms for execution in executions)
        if duration is not None
    ]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def executions_by_hour(
    executions: Iterable[ExecutionRecord],
    *,
    now: datetime,
    timezone: ZoneInfo,
) -> list[BucketCount]:
    """Count today's executions per local hour as `HH:00`, in first-seen order."""

    today_start = start_of_day(now.astimezone(timezone))
    counts: Counter[str] = Counter()
    for execution in executions:
        local_start = execution.started_at.astimezone(timezone)
        if local_start < today_start:
            continue
        counts[f"{local_start.hour:02d}:00"] += 1
    return [BucketCount(key=key, count=count) for key, count in counts.items()]


def executions_by_day(
    executions: Iterable[ExecutionRecord],
    *,
    timezone: ZoneInfo,
) -> list[BucketCount]:
    """Count executions per local calendar date `YYYY-MM-DD`, in first-seen order."""

    counts: Counter[str] = Counter()
    for execution in executions:
        counts[execution.started_at.astimezone(timezone).strftime("%Y-%m-%d")] += 1
    return [BucketCount(key=key, count=count) for key, count in counts.items()]


def last_errors(
    executions: Iterable[ExecutionRecord],
    *,
    limit: int = LAST_ERRORS_LIMIT,
) -> list[ExecutionErrorSummary]:
    """Return the first `limit` failed executions in API (most recent first) order."""

    failed = [
        ExecutionErrorSummary(
            id=execution.id,
            timestamp=execution.started_at,
            workflow_id=execution.workflow_id,
        )
        for execution in executions
        if execution.status == ExecutionStatus.ERROR
    ]
    return failed[:limit]


def summarize_executions(
    executions: Sequence[ExecutionRecord],
    *,
    window: DateWindow,
    now: datetime,
    timezone_name: str,
) -> WorkflowStats:
    """Filter a fetched page to `window` and aggregate it."""

    timezone = ZoneInfo(timezone_name)
    in_window = filter_in_window(executions, window)
    total = len(in_window)
    statuses = Counter(execution.status for execution in in_window)
    successful = statuses[ExecutionStatus.SUCCESS]
    failed = statuses[ExecutionStatus.ERROR]
    average_ms = average_execution_time_ms(in_window)

    return WorkflowStats(
        total=total,
        successful=successful,
        failed=failed,
        running=statuses[ExecutionStatus.RUNNING],
        error_rate=round_half_away(percentage(failed, total)),
        success_rate=round_half_away(percentage(successful, total)),
        average_execution_time_ms=int(round_half_away(average_ms, 0)),
        average_execution_time_seconds=int(round_half_away(average_ms / 1000, 0)),
        executions_by_hour=executions_by_hour(in_window, now=now, timezone=timezone),
        executions_by_day=executions_by_day(in_window, timezone=timezone),
        last_execution=in_window[0] if in_window else None,
        last_errors=last_errors(in_window),
    )

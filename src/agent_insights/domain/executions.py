"""n8n workflow execution records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class ExecutionStatus(StrEnum):
    """Execution statuses the dashboard aggregates on."""

    SUCCESS = "success"
    ERROR = "error"
    RUNNING = "running"
    WAITING = "waiting"


class InvalidExecutionPayloadError(ValueError):
    """Raised when an execution payload lacks required fields."""


@dataclass(frozen=True)
class ExecutionRecord:
    """One workflow run as reported by the n8n API.

    `status` keeps values outside `ExecutionStatus` (for example `canceled`)
    untouched so that they still count toward totals.
    """

    id: str
    workflow_id: str
    status: str
    started_at: datetime
    mode: str = ""
    stopped_at: datetime | None = None
    retry_of: str | None = None
    retry_success_id: str | None = None
    wait_till: datetime | None = None

    @property
    def duration_ms(self) -> float | None:
        """Return run time in milliseconds for finished successful runs only.

        Clock skew between workers can stop a run before it started; such runs
        count as zero.
        """

        if self.status != ExecutionStatus.SUCCESS or self.stopped_at is None:
            return None
        return max((self.stopped_at - self.started_at).total_seconds() * 1000, 0.0)

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> ExecutionRecord:
        """Parse one execution object from the n8n REST payload."""

        execution_id = payload.get("id")
        started_at = _parse_timestamp(payload.get("startedAt"))
        if execution_id is None or started_at is None:
            raise InvalidExecutionPayloadError("execution payload requires id and startedAt")
        return cls(
            id=str(execution_id),
            workflow_id=str(payload.get("workflowId") or ""),
            status=str(payload.get("status") or ""),
            started_at=started_at,
            mode=str(payload.get("mode") or ""),
            stopped_at=_parse_timestamp(payload.get("stoppedAt")),
            retry_of=_optional_str(payload.get("retryOf")),
            retry_success_id=_optional_str(payload.get("retrySuccessId")),
            wait_till=_parse_timestamp(payload.get("waitTill")),
        )


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as error:
        raise InvalidExecutionPayloadError(f"invalid execution timestamp: {value}") from error
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)

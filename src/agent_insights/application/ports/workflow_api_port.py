"""Port for the remote workflow-execution service."""

from __future__ import annotations

from typing import Protocol

from agent_insights.domain.executions import ExecutionRecord


class WorkflowApiPort(Protocol):
    """Async contract for the workflow API; failures raise."""

    async def get_workflow(self) -> dict[str, object]:
        """Return metadata of the configured workflow."""

    async def list_recent_executions(self, limit: int = 100) -> list[ExecutionRecord]:
        """Return up to `limit` most recent executions of the configured workflow."""

    async def health_check(self) -> bool:
        """Return whether workflow metadata can be fetched."""

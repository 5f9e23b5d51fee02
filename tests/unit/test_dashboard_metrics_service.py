from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from agent_insights.application.ports.chat_metrics_query_port import (
    AgentMetricsSnapshot,
    ChannelCount,
    MessageMetrics,
    RankedCount,
    TableColumn,
)
from agent_insights.application.services.dashboard_metrics_service import (
    DashboardMetricsService,
    estimate_channel_appointments,
)
from agent_insights.domain.date_window import DateWindow
from agent_insights.domain.executions import ExecutionRecord
from agent_insights.domain.result import Err, Ok
from agent_insights.infrastructure.n8n.http_client import N8nApiStatusError

NOW = datetime(2026, 2, 16, 15, 30, tzinfo=UTC)


@dataclass
class _ChatMetricsStub:
    agent: Ok[AgentMetricsSnapshot] | Err = field(
        default_factory=lambda: Ok(
            AgentMetricsSnapshot(
                total_conversations=10,
                bot_responses=9,
                avg_messages_per_conversation=4.25,
                product_mentions={"puertas": 3, "barandas": 1, "portones": 0},
            )
        )
    )
    messages: Ok[MessageMetrics] | Err = field(
        default_factory=lambda: Ok(MessageMetrics(total_messages=42, avg_messages_per_conversation=4.2))
    )
    products: Ok[list[RankedCount]] | Err = field(
        default_factory=lambda: Ok([RankedCount(name="Puertas", count=3)])
    )
    channels: Ok[list[ChannelCount]] | Err = field(
        default_factory=lambda: Ok(
            [ChannelCount(channel="A", count=6), ChannelCount(channel="B", count=4)]
        )
    )
    conversations: Ok[int] | Err = field(default_factory=lambda: Ok(10))
    appointments: Ok[int] | Err = field(default_factory=lambda: Ok(3))
    tables: Ok[list[str]] | Err = field(default_factory=lambda: Ok(["Chat", "Message"]))
    healthy: bool = True
    raise_on_counts: bool = False
    windows: list[DateWindow] = field(default_factory=list)

    async def health_check(self) -> bool:
        return self.healthy

    async def list_tables(self) -> Ok[list[str]] | Err:
        return self.tables

    async def describe_table(self, name: str) -> Ok[list[TableColumn]] | Err:
        if name == "Message":
            return Err(operation="describe_table", reason="permission denied")
        return Ok([TableColumn(column_name="id", data_type="text", is_nullable="NO")])

    async def count_conversations(self, window: DateWindow) -> Ok[int] | Err:
        self.windows.append(window)
        if self.raise_on_counts:
            raise RuntimeError("pool exhausted")
        return self.conversations

    async def message_metrics(self, window: DateWindow) -> Ok[MessageMetrics] | Err:
        return self.messages

    async def appointment_metrics(self, window: DateWindow) -> Ok[int] | Err:
        if self.raise_on_counts:
            raise RuntimeError("pool exhausted")
        return self.appointments

    async def agent_metrics(self, window: DateWindow) -> Ok[AgentMetricsSnapshot] | Err:
        self.windows.append(window)
        return self.agent

    async def top_products(self, window: DateWindow, *, limit: int = 5) -> Ok[list[RankedCount]] | Err:
        return self.products

    async def channel_distribution(self, window: DateWindow) -> Ok[list[ChannelCount]] | Err:
        return self.channels


@dataclass
class _WorkflowApiStub:
    executions: list[ExecutionRecord] = field(default_factory=list)
    error: Exception | None = None
    healthy: bool = True
    requested_limits: list[int] = field(default_factory=list)

    async def get_workflow(self) -> dict[str, object]:
        return {"id": "wf-1"}

    async def list_recent_executions(self, limit: int = 100) -> list[ExecutionRecord]:
        self.requested_limits.append(limit)
        if self.error is not None:
            raise self.error
        return self.executions

    async def health_check(self) -> bool:
        return self.healthy


def _service(
    chat: _ChatMetricsStub | None = None,
    workflow: _WorkflowApiStub | None = None,
) -> DashboardMetricsService:
    return DashboardMetricsService(
        chat_metrics=chat or _ChatMetricsStub(),
        workflow_api=workflow or _WorkflowApiStub(),
        clock=lambda: NOW,
    )


def _execution(execution_id: str, *, status: str, started_at: datetime) -> ExecutionRecord:
    return ExecutionRecord(
        id=execution_id,
        workflow_id="wf-1",
        status=status,
        started_at=started_at,
        mode="webhook",
        stopped_at=started_at + timedelta(seconds=1) if status != "running" else None,
    )


@pytest.mark.asyncio
async def test_agent_metrics_computes_response_rate_and_echoes_window() -> None:
    chat = _ChatMetricsStub()

    result = await _service(chat).agent_metrics(days=7)

    assert result.total_conversations == 10
    assert result.bot_responses == 9
    assert result.response_rate == 90.0
    assert result.avg_messages_per_conversation == 4.3
    assert result.total_messages == 42
    assert result.product_mentions == {"puertas": 3, "barandas": 1, "portones": 0}
    assert [item.name for item in result.top_products] == ["Puertas"]
    assert result.date_range.days == 7
    assert result.date_range.start == datetime(2026, 2, 9, tzinfo=UTC)
    assert chat.windows[0].end.date() == NOW.date()


@pytest.mark.asyncio
async def test_agent_metrics_with_zero_conversations_reports_zero_rate() -> None:
    chat = _ChatMetricsStub(
        agent=Ok(
            AgentMetricsSnapshot(
                total_conversations=0,
                bot_responses=0,
                avg_messages_per_conversation=0.0,
                product_mentions={"puertas": 0, "barandas": 0, "portones": 0},
            )
        )
    )

    result = await _service(chat).agent_metrics(days=7)

    assert result.response_rate == 0.0
    assert result.avg_messages_per_conversation == 0.0


@pytest.mark.asyncio
async def test_agent_metrics_degrades_failed_queries_to_zeros() -> None:
    failure = Err(operation="agent_metrics", reason="connection refused")
    chat = _ChatMetricsStub(
        agent=failure,
        messages=failure,
        products=failure,
        channels=failure,
    )

    result = await _service(chat).agent_metrics(days=7)

    assert result.total_conversations == 0
    assert result.bot_responses == 0
    assert result.response_rate == 0.0
    assert result.total_messages == 0
    assert result.product_mentions == {"puertas": 0, "barandas": 0, "portones": 0}
    assert result.top_products == []
    assert result.conversations_by_channel == []


@pytest.mark.asyncio
async def test_appointments_metrics_estimates_channels_proportionally() -> None:
    result = await _service().appointments_metrics(days=30)

    assert result.total_appointments == 3
    assert result.total_conversations == 10
    assert result.conversion_rate == 30.0
    assert [(item.channel, item.count) for item in result.appointments_by_channel] == [
        ("A", 1),
        ("B", 1),
    ]
    assert [(item.name, item.count, item.conversions) for item in result.top_products] == [
        ("Puertas", 3, 0)
    ]
    assert result.date_range.days == 30


@pytest.mark.parametrize(
    ("channel", "appointments", "conversations", "expected"),
    [
        (6, 3, 10, 1),
        (4, 3, 10, 1),
        (5, 2, 5, 2),
        (3, 4, 0, 12),
        (0, 4, 10, 0),
    ],
)
def test_estimate_channel_appointments_floors_proportional_share(
    channel: int,
    appointments: int,
    conversations: int,
    expected: int,
) -> None:
    assert (
        estimate_channel_appointments(
            channel_conversations=channel,
            total_appointments=appointments,
            total_conversations=conversations,
        )
        == expected
    )


@pytest.mark.asyncio
async def test_workflow_metrics_with_no_executions_is_all_zero() -> None:
    workflow = _WorkflowApiStub()

    result = await _service(workflow=workflow).workflow_metrics(days=7)

    assert result.total_executions == 0
    assert result.success_rate == 0.0
    assert result.error_rate == 0.0
    assert result.average_execution_time == 0
    assert result.executions_by_hour == []
    assert result.executions_by_day == []
    assert result.last_execution is None
    assert result.last_errors == []
    assert result.execution_page_limit == 200
    assert workflow.requested_limits == [200]


@pytest.mark.asyncio
async def test_workflow_metrics_tolerates_clock_skewed_runs() -> None:
    started_at = NOW - timedelta(minutes=5)
    workflow = _WorkflowApiStub(
        executions=[
            ExecutionRecord(
                id="1",
                workflow_id="wf-1",
                status="success",
                started_at=started_at,
                mode="webhook",
                stopped_at=started_at - timedelta(seconds=1),
            )
        ]
    )

    result = await _service(workflow=workflow).workflow_metrics(days=7)

    assert result.total_executions == 1
    assert result.average_execution_time == 0
    assert result.average_execution_time_seconds == 0


@pytest.mark.asyncio
async def test_workflow_metrics_propagates_api_failures() -> None:
    workflow = _WorkflowApiStub(
        error=N8nApiStatusError(status_code=500, body_text="boom")
    )

    with pytest.raises(N8nApiStatusError):
        await _service(workflow=workflow).workflow_metrics(days=7)


@pytest.mark.asyncio
async def test_summary_degrades_chat_store_failures_but_keeps_workflow_stats() -> None:
    chat = _ChatMetricsStub(raise_on_counts=True)
    workflow = _WorkflowApiStub(
        executions=[
            _execution("3", status="success", started_at=NOW - timedelta(hours=1)),
            _execution("2", status="error", started_at=NOW - timedelta(hours=2)),
            _execution("1", status="success", started_at=NOW - timedelta(days=2)),
        ]
    )

    result = await _service(chat, workflow).summary()

    assert result.conversations_today == 0
    assert result.appointments_today == 0
    assert result.total_executions_today == 2
    assert result.workflow_success_rate == 50.0
    assert result.last_execution is not None
    assert result.last_execution.id == "3"
    assert result.timestamp == NOW


@dataclass
class _BlockingChatMetrics(_ChatMetricsStub):
    started: asyncio.Event = field(default_factory=asyncio.Event)
    cancelled: bool = False

    async def count_conversations(self, window: DateWindow) -> Ok[int] | Err:
        self.started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return self.conversations


@dataclass
class _FailingAfterChatStartWorkflowApi(_WorkflowApiStub):
    chat_started: asyncio.Event = field(default_factory=asyncio.Event)

    async def list_recent_executions(self, limit: int = 100) -> list[ExecutionRecord]:
        await self.chat_started.wait()
        raise N8nApiStatusError(status_code=503, body_text="unavailable")


@pytest.mark.asyncio
async def test_summary_cancels_chat_counts_when_workflow_api_fails() -> None:
    chat = _BlockingChatMetrics()
    workflow = _FailingAfterChatStartWorkflowApi(chat_started=chat.started)

    with pytest.raises(N8nApiStatusError):
        await _service(chat, workflow).summary()

    assert chat.cancelled is True


@pytest.mark.asyncio
async def test_summary_counts_today_only() -> None:
    chat = _ChatMetricsStub(conversations=Ok(4), appointments=Ok(1))

    result = await _service(chat).summary()

    assert result.conversations_today == 4
    assert result.appointments_today == 1
    assert chat.windows[0].start == datetime(2026, 2, 16, tzinfo=UTC)
    assert chat.windows[0].days == 0


@pytest.mark.asyncio
async def test_health_reports_unhealthy_when_any_source_is_down() -> None:
    result = await _service(workflow=_WorkflowApiStub(healthy=False)).health()

    assert result.status == "unhealthy"
    assert result.services.n8n == "disconnected"
    assert result.services.database == "connected"


@pytest.mark.asyncio
async def test_health_reports_healthy_when_both_sources_respond() -> None:
    result = await _service().health()

    assert result.status == "healthy"
    assert result.timestamp == NOW


@pytest.mark.asyncio
async def test_database_tables_degrades_failed_descriptions_to_empty_columns() -> None:
    result = await _service().database_tables()

    assert result.count == 2
    assert [table.name for table in result.tables] == ["Chat", "Message"]
    assert [column.column_name for column in result.tables[0].columns] == ["id"]
    assert result.tables[1].columns == []


@pytest.mark.asyncio
async def test_database_tables_with_failed_listing_is_empty() -> None:
    chat = _ChatMetricsStub(tables=Err(operation="list_tables", reason="timeout"))

    result = await _service(chat).database_tables()

    assert result.count == 0
    assert result.tables == []

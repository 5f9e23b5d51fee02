"""Application service composing chat-store and workflow metrics for the dashboard."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from agent_insights.application.dto.metrics_models import (
    AgentMetricsResponse,
    AppointmentsMetricsResponse,
    ChannelCountItem,
    DatabaseTablesResponse,
    DateRange,
    DayCount,
    ExecutionErrorItem,
    HealthResponse,
    HourCount,
    NamedCount,
    ProductConversions,
    ServicesHealth,
    SummaryResponse,
    TableColumnItem,
    TableDescription,
    WorkflowExecutionItem,
    WorkflowMetricsResponse,
)
from agent_insights.application.ports.chat_metrics_query_port import (
    AgentMetricsSnapshot,
    ChatMetricsQueryPort,
    MessageMetrics,
)
from agent_insights.application.ports.workflow_api_port import WorkflowApiPort
from agent_insights.domain.date_window import DateWindow, today_window, trailing_window
from agent_insights.domain.executions import ExecutionRecord
from agent_insights.domain.rates import round_half_away, rounded_percentage
from agent_insights.domain.result import Err, Ok, unwrap_or
from agent_insights.domain.text_rules import PRODUCT_RULES
from agent_insights.domain.workflow_stats import (
    EXECUTION_PAGE_LIMIT,
    WorkflowStats,
    summarize_executions,
)

logger = logging.getLogger(__name__)
T = TypeVar("T")

AGENT_DEFAULT_DAYS = 7
APPOINTMENTS_DEFAULT_DAYS = 30
WORKFLOW_DEFAULT_DAYS = 7

_EMPTY_AGENT_METRICS = AgentMetricsSnapshot(
    total_conversations=0,
    bot_responses=0,
    avg_messages_per_conversation=0.0,
    product_mentions={rule.key: 0 for rule in PRODUCT_RULES},
)
_EMPTY_MESSAGE_METRICS = MessageMetrics(total_messages=0, avg_messages_per_conversation=0.0)


def _degrade(result: Ok[T] | Err, default: T) -> T:
    """Replace a failed chat-store result with its zero-valued default.

    Chat-store failures are hidden behind defaults; workflow API failures are not
    routed through here and propagate to the caller.
    """

    if isinstance(result, Err):
        logger.warning(
            "db_metric_degraded operation=%s reason=%s",
            result.operation,
            result.reason,
        )
    return unwrap_or(result, default)


class DashboardMetricsService:
    """Compute dashboard sections from the chat store and the workflow API."""

    def __init__(
        self,
        *,
        chat_metrics: ChatMetricsQueryPort,
        workflow_api: WorkflowApiPort,
        timezone_name: str = "UTC",
        clock: Callable[[], datetime] | None = None,
        execution_page_limit: int = EXECUTION_PAGE_LIMIT,
    ) -> None:
        self._chat_metrics = chat_metrics
        self._workflow_api = workflow_api
        self._timezone_name = timezone_name
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._execution_page_limit = execution_page_limit

    async def agent_metrics(self, *, days: int = AGENT_DEFAULT_DAYS) -> AgentMetricsResponse:
        """Return agent activity, response rate and product interest for the window."""

        window = self._window(days)
        agent_result, message_result, products_result, channels_result = await asyncio.gather(
            self._chat_metrics.agent_metrics(window),
            self._chat_metrics.message_metrics(window),
            self._chat_metrics.top_products(window),
            self._chat_metrics.channel_distribution(window),
        )
        agent = _degrade(agent_result, _EMPTY_AGENT_METRICS)
        messages = _degrade(message_result, _EMPTY_MESSAGE_METRICS)
        products = _degrade(products_result, [])
        channels = _degrade(channels_result, [])

        return AgentMetricsResponse(
            total_conversations=agent.total_conversations,
            bot_responses=agent.bot_responses,
            response_rate=rounded_percentage(agent.bot_responses, agent.total_conversations),
            avg_messages_per_conversation=round_half_away(agent.avg_messages_per_conversation),
            total_messages=messages.total_messages,
            product_mentions=agent.product_mentions,
            top_products=[NamedCount(name=item.name, count=item.count) for item in products],
            conversations_by_channel=[
                ChannelCountItem(channel=item.channel, count=item.count) for item in channels
            ],
            date_range=_date_range(window),
        )

    async def appointments_metrics(
        self,
        *,
        days: int = APPOINTMENTS_DEFAULT_DAYS,
    ) -> AppointmentsMetricsResponse:
        """Return detected appointments, conversion rate and per-channel estimates."""

        window = self._window(days)
        appointments_result, conversations_result, products_result, channels_result = (
            await asyncio.gather(
                self._chat_metrics.appointment_metrics(window),
                self._chat_metrics.count_conversations(window),
                self._chat_metrics.top_products(window),
                self._chat_metrics.channel_distribution(window),
            )
        )
        appointments = _degrade(appointments_result, 0)
        conversations = _degrade(conversations_result, 0)
        products = _degrade(products_result, [])
        channels = _degrade(channels_result, [])

        return AppointmentsMetricsResponse(
            total_appointments=appointments,
            conversion_rate=rounded_percentage(appointments, conversations),
            total_conversations=conversations,
            top_products=[
                ProductConversions(name=item.name, count=item.count, conversions=0)
                for item in products
            ],
            appointments_by_channel=[
                ChannelCountItem(
                    channel=item.channel,
                    count=estimate_channel_appointments(
                        channel_conversations=item.count,
                        total_appointments=appointments,
                        total_conversations=conversations,
                    ),
                )
                for item in channels
            ],
            date_range=_date_range(window),
        )

    async def workflow_metrics(self, *, days: int = WORKFLOW_DEFAULT_DAYS) -> WorkflowMetricsResponse:
        """Return execution counts, rates, timings and buckets for the window."""

        now = self._clock()
        window = trailing_window(now=now, days=days, timezone_name=self._timezone_name)
        stats = await self._workflow_stats(window, now=now)

        return WorkflowMetricsResponse(
            total_executions=stats.total,
            successful_executions=stats.successful,
            failed_executions=stats.failed,
            running_executions=stats.running,
            error_rate=stats.error_rate,
            success_rate=stats.success_rate,
            average_execution_time=stats.average_execution_time_ms,
            average_execution_time_seconds=stats.average_execution_time_seconds,
            executions_by_hour=[
                HourCount(hour=bucket.key, count=bucket.count)
                for bucket in stats.executions_by_hour
            ],
            executions_by_day=[
                DayCount(date=bucket.key, count=bucket.count) for bucket in stats.executions_by_day
            ],
            last_execution=_execution_item(stats.last_execution),
            last_errors=[
                ExecutionErrorItem(
                    id=item.id,
                    timestamp=item.timestamp,
                    workflow_id=item.workflow_id,
                )
                for item in stats.last_errors
            ],
            execution_page_limit=self._execution_page_limit,
            date_range=_date_range(window),
        )

    async def summary(self) -> SummaryResponse:
        """Return today's snapshot; chat-store failures degrade to zero counts.

        A workflow API failure cancels the in-flight chat-store counts and propagates.
        """

        now = self._clock()
        window = today_window(now=now, timezone_name=self._timezone_name)
        chat_counts = asyncio.create_task(self._today_chat_counts(window))
        try:
            stats = await self._workflow_stats(window, now=now)
        except Exception:
            chat_counts.cancel()
            await asyncio.gather(chat_counts, return_exceptions=True)
            raise
        conversations_today, appointments_today = await chat_counts

        return SummaryResponse(
            conversations_today=conversations_today,
            appointments_today=appointments_today,
            workflow_success_rate=stats.success_rate,
            total_executions_today=stats.total,
            last_execution=_execution_item(stats.last_execution),
            timestamp=now,
        )

    async def health(self) -> HealthResponse:
        """Probe both data sources concurrently."""

        n8n_ok, database_ok = await asyncio.gather(
            self._workflow_api.health_check(),
            self._chat_metrics.health_check(),
        )
        logger.info("health_checked n8n=%s database=%s", n8n_ok, database_ok)
        return HealthResponse(
            status="healthy" if n8n_ok and database_ok else "unhealthy",
            services=ServicesHealth(
                n8n="connected" if n8n_ok else "disconnected",
                database="connected" if database_ok else "disconnected",
            ),
            timestamp=self._clock(),
        )

    async def database_tables(self) -> DatabaseTablesResponse:
        """Describe every table in the chat store."""

        names = _degrade(await self._chat_metrics.list_tables(), [])
        described = await asyncio.gather(
            *(self._chat_metrics.describe_table(name) for name in names)
        )
        tables = [
            TableDescription(
                name=name,
                columns=[
                    TableColumnItem(
                        column_name=column.column_name,
                        data_type=column.data_type,
                        is_nullable=column.is_nullable,
                    )
                    for column in _degrade(result, [])
                ],
            )
            for name, result in zip(names, described, strict=True)
        ]
        return DatabaseTablesResponse(tables=tables, count=len(names))

    def _window(self, days: int) -> DateWindow:
        return trailing_window(now=self._clock(), days=days, timezone_name=self._timezone_name)

    async def _workflow_stats(self, window: DateWindow, *, now: datetime) -> WorkflowStats:
        executions = await self._workflow_api.list_recent_executions(self._execution_page_limit)
        return summarize_executions(
            executions,
            window=window,
            now=now,
            timezone_name=self._timezone_name,
        )

    async def _today_chat_counts(self, window: DateWindow) -> tuple[int, int]:
        try:
            conversations_result, appointments_result = await asyncio.gather(
                self._chat_metrics.count_conversations(window),
                self._chat_metrics.appointment_metrics(window),
            )
        except Exception as error:  # noqa: BLE001
            logger.warning("summary_chat_metrics_unavailable error=%s", error)
            return 0, 0
        return _degrade(conversations_result, 0), _degrade(appointments_result, 0)


def estimate_channel_appointments(
    *,
    channel_conversations: int,
    total_appointments: int,
    total_conversations: int,
) -> int:
    """Spread appointments over a channel in proportion to its conversations.

    An approximation, not a per-channel measurement.
    """

    return channel_conversations * total_appointments // max(total_conversations, 1)


def _date_range(window: DateWindow) -> DateRange:
    return DateRange(start=window.start, end=window.end, days=window.days)


def _execution_item(execution: ExecutionRecord | None) -> WorkflowExecutionItem | None:
    if execution is None:
        return None
    return WorkflowExecutionItem(
        id=execution.id,
        workflow_id=execution.workflow_id,
        mode=execution.mode,
        status=execution.status,
        started_at=execution.started_at,
        stopped_at=execution.stopped_at,
        retry_of=execution.retry_of,
        retry_success_id=execution.retry_success_id,
        wait_till=execution.wait_till,
    )

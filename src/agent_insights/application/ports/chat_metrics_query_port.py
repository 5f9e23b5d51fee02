"""Query port for chat-store aggregate metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from agent_insights.domain.date_window import DateWindow
from agent_insights.domain.result import Err, Ok

TOP_PRODUCTS_LIMIT = 5


@dataclass(frozen=True)
class MessageMetrics:
    """Message volume within one window."""

    total_messages: int
    avg_messages_per_conversation: float


@dataclass(frozen=True)
class AgentMetricsSnapshot:
    """Session-level counters describing the chat agent's activity."""

    total_conversations: int
    bot_responses: int
    avg_messages_per_conversation: float
    product_mentions: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RankedCount:
    """One named entry in a ranked list."""

    name: str
    count: int


@dataclass(frozen=True)
class ChannelCount:
    """Distinct conversation count for one channel."""

    channel: str
    count: int


@dataclass(frozen=True)
class TableColumn:
    """Column description returned by table introspection."""

    column_name: str
    data_type: str
    is_nullable: str


class ChatMetricsQueryPort(Protocol):
    """Async contract for read-only chat-store aggregates.

    Data operations never raise; failures come back as `Err`.
    """

    async def health_check(self) -> bool:
        """Return whether a trivial query succeeds."""

    async def list_tables(self) -> Ok[list[str]] | Err:
        """Return table names in the store."""

    async def describe_table(self, name: str) -> Ok[list[TableColumn]] | Err:
        """Return ordered column descriptions for one table."""

    async def count_conversations(self, window: DateWindow) -> Ok[int] | Err:
        """Return the number of conversations created inside the window."""

    async def message_metrics(self, window: DateWindow) -> Ok[MessageMetrics] | Err:
        """Return message totals inside the window."""

    async def appointment_metrics(self, window: DateWindow) -> Ok[int] | Err:
        """Return bot messages confirming an appointment inside the window."""

    async def agent_metrics(self, window: DateWindow) -> Ok[AgentMetricsSnapshot] | Err:
        """Return agent session counters inside the window."""

    async def top_products(
        self,
        window: DateWindow,
        *,
        limit: int = TOP_PRODUCTS_LIMIT,
    ) -> Ok[list[RankedCount]] | Err:
        """Return product categories ranked by mention count."""

    async def channel_distribution(self, window: DateWindow) -> Ok[list[ChannelCount]] | Err:
        """Return distinct conversations per channel, largest first."""

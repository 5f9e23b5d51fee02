"""SQLAlchemy query adapter for chat-store dashboard aggregates."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent_insights.application.ports.chat_metrics_query_port import (
    TOP_PRODUCTS_LIMIT,
    AgentMetricsSnapshot,
    ChannelCount,
    ChatMetricsQueryPort,
    MessageMetrics,
    RankedCount,
    TableColumn,
)
from agent_insights.domain.date_window import DateWindow, naive_utc
from agent_insights.domain.rates import ratio
from agent_insights.domain.result import Err, Ok
from agent_insights.domain.text_rules import (
    APPOINTMENT_CONFIRMATION_PHRASES,
    PRODUCT_RULES,
    ProductRule,
    rule_rank,
)
from agent_insights.infrastructure.db.metadata import chats, messages

logger = logging.getLogger(__name__)
T = TypeVar("T")

_message_text = sa.cast(messages.c.message, sa.Text())


def _contains_any(patterns: Sequence[str]) -> sa.ColumnElement[bool]:
    return sa.or_(*(_message_text.ilike(f"%{pattern}%") for pattern in patterns))


def conversations_created_in(window: DateWindow) -> sa.Select[tuple[int]]:
    """Build the `"Chat"` count for the window, bound as naive UTC bounds."""

    return sa.select(sa.func.count()).select_from(chats).where(
        chats.c.createdAt >= naive_utc(window.start),
        chats.c.createdAt <= naive_utc(window.end),
    )


class SqlAlchemyChatMetricsQueries(ChatMetricsQueryPort):
    """Aggregate conversation, message and product counters from the chat store.

    Each operation borrows its own pooled connection, so callers may run several
    operations concurrently. Query failures are logged and returned as `Err`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bot_message_source: str = "ios",
        default_channel_name: str = "WhatsApp",
        product_rules: tuple[ProductRule, ...] = PRODUCT_RULES,
    ) -> None:
        self._session_factory = session_factory
        self._bot_message_source = bot_message_source
        self._default_channel_name = default_channel_name
        self._product_rules = product_rules

    async def health_check(self) -> bool:
        """Return True when `SELECT 1` completes."""

        result = await self._run("health_check", self._select_one)
        return isinstance(result, Ok)

    async def list_tables(self) -> Ok[list[str]] | Err:
        async def query(session: AsyncSession) -> list[str]:
            connection = await session.connection()
            names = await connection.run_sync(
                lambda sync_connection: sa.inspect(sync_connection).get_table_names()
            )
            return sorted(names)

        return await self._run("list_tables", query)

    async def describe_table(self, name: str) -> Ok[list[TableColumn]] | Err:
        def inspect_columns(sync_connection: Connection) -> list[TableColumn]:
            dialect = sync_connection.dialect
            return [
                TableColumn(
                    column_name=column["name"],
                    data_type=column["type"].compile(dialect=dialect).lower(),
                    is_nullable="YES" if column.get("nullable", True) else "NO",
                )
                for column in sa.inspect(sync_connection).get_columns(name)
            ]

        async def query(session: AsyncSession) -> list[TableColumn]:
            connection = await session.connection()
            return await connection.run_sync(inspect_columns)

        return await self._run(f"describe_table:{name}", query)

    async def count_conversations(self, window: DateWindow) -> Ok[int] | Err:
        """Count `Chat` rows created inside the inclusive window."""

        statement = conversations_created_in(window)

        async def query(session: AsyncSession) -> int:
            return int((await session.execute(statement)).scalar_one() or 0)

        return await self._run("count_conversations", query)

    async def message_metrics(self, window: DateWindow) -> Ok[MessageMetrics] | Err:
        statement = sa.select(
            sa.func.count().label("total_messages"),
            sa.func.count(sa.distinct(messages.c.sessionId)).label("sessions"),
        ).where(*self._message_window(window))

        async def query(session: AsyncSession) -> MessageMetrics:
            row = (await session.execute(statement)).one()
            total = int(row.total_messages or 0)
            return MessageMetrics(
                total_messages=total,
                avg_messages_per_conversation=ratio(total, int(row.sessions or 0)),
            )

        return await self._run("message_metrics", query)

    async def appointment_metrics(self, window: DateWindow) -> Ok[int] | Err:
        """Count bot messages whose text contains an appointment confirmation phrase."""

        statement = sa.select(sa.func.count()).select_from(messages).where(
            *self._message_window(window),
            messages.c.source == self._bot_message_source,
            _contains_any(APPOINTMENT_CONFIRMATION_PHRASES),
        )

        async def query(session: AsyncSession) -> int:
            return int((await session.execute(statement)).scalar_one() or 0)

        return await self._run("appointment_metrics", query)

    async def agent_metrics(self, window: DateWindow) -> Ok[AgentMetricsSnapshot] | Err:
        """Return session counters and independent per-category mention counts."""

        bot_session = sa.case(
            (messages.c.source == self._bot_message_source, messages.c.sessionId),
        )
        mention_columns = [
            sa.func.sum(sa.case((_contains_any(rule.patterns), 1), else_=0)).label(rule.key)
            for rule in self._product_rules
        ]
        statement = sa.select(
            sa.func.count().label("total_messages"),
            sa.func.count(sa.distinct(messages.c.sessionId)).label("sessions"),
            sa.func.count(sa.distinct(bot_session)).label("bot_sessions"),
            *mention_columns,
        ).where(*self._message_window(window))

        async def query(session: AsyncSession) -> AgentMetricsSnapshot:
            row = (await session.execute(statement)).one()._mapping
            sessions = int(row["sessions"] or 0)
            return AgentMetricsSnapshot(
                total_conversations=sessions,
                bot_responses=int(row["bot_sessions"] or 0),
                avg_messages_per_conversation=ratio(int(row["total_messages"] or 0), sessions),
                product_mentions={
                    rule.key: int(row[rule.key] or 0) for rule in self._product_rules
                },
            )

        return await self._run("agent_metrics", query)

    async def top_products(
        self,
        window: DateWindow,
        *,
        limit: int = TOP_PRODUCTS_LIMIT,
    ) -> Ok[list[RankedCount]] | Err:
        """Rank categories with each message attributed to its first matching rule."""

        category = sa.case(
            *((_contains_any(rule.patterns), rule.label) for rule in self._product_rules),
        )
        every_pattern = [pattern for rule in self._product_rules for pattern in rule.patterns]
        categorized = (
            sa.select(category.label("product"))
            .where(*self._message_window(window), _contains_any(every_pattern))
            .subquery()
        )
        statement = sa.select(
            categorized.c.product,
            sa.func.count().label("total"),
        ).group_by(categorized.c.product)

        async def query(session: AsyncSession) -> list[RankedCount]:
            rows = (await session.execute(statement)).all()
            ranked = sorted(
                (RankedCount(name=str(row.product), count=int(row.total)) for row in rows),
                key=lambda item: (-item.count, rule_rank(item.name, self._product_rules)),
            )
            return ranked[:limit]

        return await self._run("top_products", query)

    async def channel_distribution(self, window: DateWindow) -> Ok[list[ChannelCount]] | Err:
        sessions = sa.func.count(sa.distinct(messages.c.sessionId)).label("total")
        statement = (
            sa.select(messages.c.instanceId.label("channel"), sessions)
            .where(*self._message_window(window))
            .group_by(messages.c.instanceId)
            .order_by(sessions.desc(), messages.c.instanceId)
        )

        async def query(session: AsyncSession) -> list[ChannelCount]:
            rows = (await session.execute(statement)).all()
            return [
                ChannelCount(
                    channel=row.channel or self._default_channel_name,
                    count=int(row.total),
                )
                for row in rows
            ]

        return await self._run("channel_distribution", query)

    @staticmethod
    def _message_window(window: DateWindow) -> tuple[sa.ColumnElement[bool], ...]:
        return (
            messages.c.messageTimestamp >= window.start_epoch_seconds,
            messages.c.messageTimestamp <= window.end_epoch_seconds,
        )

    @staticmethod
    async def _select_one(session: AsyncSession) -> int:
        return int((await session.execute(sa.select(1))).scalar_one())

    async def _run(
        self,
        operation: str,
        query: Callable[[AsyncSession], Awaitable[T]],
    ) -> Ok[T] | Err:
        started = time.perf_counter()
        try:
            async with self._session_factory() as session:
                value = await query(session)
        except Exception as error:  # noqa: BLE001
            logger.warning("db_query_failed operation=%s error=%s", operation, error)
            return Err(operation=operation, reason=str(error))
        logger.debug(
            "db_query_completed operation=%s duration_ms=%.1f",
            operation,
            (time.perf_counter() - started) * 1000,
        )
        return Ok(value)

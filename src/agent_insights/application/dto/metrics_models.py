"""Pydantic response models for dashboard metric endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class CamelModel(StrictModel):
    """Strict model serialized with camelCase keys."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class DateRange(CamelModel):
    start: datetime
    end: datetime
    days: int = Field(ge=0)


class NamedCount(CamelModel):
    name: str
    count: int = Field(ge=0)


class ProductConversions(CamelModel):
    name: str
    count: int = Field(ge=0)
    conversions: int = Field(ge=0)


class ChannelCountItem(CamelModel):
    channel: str
    count: int = Field(ge=0)


class HourCount(CamelModel):
    hour: str
    count: int = Field(ge=0)


class DayCount(CamelModel):
    date: str
    count: int = Field(ge=0)


class WorkflowExecutionItem(CamelModel):
    """One n8n execution as exposed to the dashboard."""

    id: str
    workflow_id: str
    mode: str
    status: str
    started_at: datetime
    stopped_at: datetime | None = None
    retry_of: str | None = None
    retry_success_id: str | None = None
    wait_till: datetime | None = None


class ExecutionErrorItem(CamelModel):
    id: str
    timestamp: datetime
    workflow_id: str


class AgentMetricsResponse(CamelModel):
    """Chat agent activity over the requested window."""

    total_conversations: int = Field(ge=0)
    bot_responses: int = Field(ge=0)
    response_rate: float = Field(ge=0.0)
    avg_messages_per_conversation: float = Field(ge=0.0)
    total_messages: int = Field(ge=0)
    product_mentions: dict[str, int]
    top_products: list[NamedCount]
    conversations_by_channel: list[ChannelCountItem]
    date_range: DateRange


class AppointmentsMetricsResponse(CamelModel):
    """Appointment detection and conversion over the requested window.

    `appointments_by_channel` is a proportional estimate and
    `top_products[].conversions` is not measured (always 0).
    """

    total_appointments: int = Field(ge=0)
    conversion_rate: float = Field(ge=0.0)
    total_conversations: int = Field(ge=0)
    top_products: list[ProductConversions]
    appointments_by_channel: list[ChannelCountItem]
    date_range: DateRange


class WorkflowMetricsResponse(CamelModel):
    """Workflow execution health over the requested window."""

    total_executions: int = Field(ge=0)
    successful_executions: int = Field(ge=0)
    failed_executions: int = Field(ge=0)
    running_executions: int = Field(ge=0)
    error_rate: float = Field(ge=0.0)
    success_rate: float = Field(ge=0.0)
    average_execution_time: int = Field(ge=0)
    average_execution_time_seconds: int = Field(ge=0)
    executions_by_hour: list[HourCount]
    executions_by_day: list[DayCount]
    last_execution: WorkflowExecutionItem | None
    last_errors: list[ExecutionErrorItem]
    execution_page_limit: int = Field(gt=0)
    date_range: DateRange


class SummaryResponse(CamelModel):
    """Cross-cutting snapshot for the current day."""

    conversations_today: int = Field(ge=0)
    appointments_today: int = Field(ge=0)
    workflow_success_rate: float = Field(ge=0.0)
    total_executions_today: int = Field(ge=0)
    last_execution: WorkflowExecutionItem | None
    timestamp: datetime


class ServicesHealth(CamelModel):
    n8n: Literal["connected", "disconnected"]
    database: Literal["connected", "disconnected"]


class HealthResponse(CamelModel):
    status: Literal["healthy", "unhealthy"]
    services: ServicesHealth
    timestamp: datetime


class HealthErrorResponse(CamelModel):
    status: Literal["error"] = "error"
    error: str
    timestamp: datetime


class TableColumnItem(StrictModel):
    """Column description keyed like `information_schema.columns`."""

    column_name: str
    data_type: str
    is_nullable: str


class TableDescription(CamelModel):
    name: str
    columns: list[TableColumnItem]


class DatabaseTablesResponse(CamelModel):
    tables: list[TableDescription]
    count: int = Field(ge=0)


class ErrorResponse(CamelModel):
    error: str
    message: str

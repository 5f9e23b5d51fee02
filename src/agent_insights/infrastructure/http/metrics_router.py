"""FastAPI router for dashboard metric API endpoints."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agent_insights.application.dto.metrics_models import (
    AgentMetricsResponse,
    AppointmentsMetricsResponse,
    DatabaseTablesResponse,
    ErrorResponse,
    HealthErrorResponse,
    HealthResponse,
    SummaryResponse,
    WorkflowMetricsResponse,
)
from agent_insights.application.services.dashboard_metrics_service import (
    AGENT_DEFAULT_DAYS,
    APPOINTMENTS_DEFAULT_DAYS,
    WORKFLOW_DEFAULT_DAYS,
    DashboardMetricsService,
)
from agent_insights.domain.date_window import parse_days

logger = logging.getLogger(__name__)

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {500: {"model": ErrorResponse}}


def build_metrics_router(*, metrics_service: DashboardMetricsService) -> APIRouter:
    """Build router exposing dashboard metric API endpoints under `/api`."""

    router = APIRouter(prefix="/api", tags=["metrics"])

    @router.get(
        "/agent/metrics",
        response_model=AgentMetricsResponse,
        responses=_ERROR_RESPONSES,
    )
    async def get_agent_metrics(days: str | None = Query(default=None)) -> JSONResponse:
        resolved_days = parse_days(days, default=AGENT_DEFAULT_DAYS)
        return await _respond(
            section="agent metrics",
            compute=lambda: metrics_service.agent_metrics(days=resolved_days),
        )

    @router.get(
        "/appointments/metrics",
        response_model=AppointmentsMetricsResponse,
        responses=_ERROR_RESPONSES,
    )
    async def get_appointments_metrics(days: str | None = Query(default=None)) -> JSONResponse:
        resolved_days = parse_days(days, default=APPOINTMENTS_DEFAULT_DAYS)
        return await _respond(
            section="appointments metrics",
            compute=lambda: metrics_service.appointments_metrics(days=resolved_days),
        )

    @router.get(
        "/workflow/metrics",
        response_model=WorkflowMetricsResponse,
        responses=_ERROR_RESPONSES,
    )
    async def get_workflow_metrics(days: str | None = Query(default=None)) -> JSONResponse:
        resolved_days = parse_days(days, default=WORKFLOW_DEFAULT_DAYS)
        return await _respond(
            section="workflow metrics",
            compute=lambda: metrics_service.workflow_metrics(days=resolved_days),
        )

    @router.get("/summary", response_model=SummaryResponse, responses=_ERROR_RESPONSES)
    async def get_summary() -> JSONResponse:
        return await _respond(section="summary", compute=metrics_service.summary)

    @router.get(
        "/health",
        response_model=HealthResponse,
        responses={503: {"model": HealthResponse}, 500: {"model": HealthErrorResponse}},
    )
    async def get_health() -> JSONResponse:
        try:
            health = await metrics_service.health()
        except Exception as error:  # noqa: BLE001
            logger.exception("health_check_error")
            return _json(
                HealthErrorResponse(error=str(error), timestamp=datetime.now(tz=UTC)),
                status_code=500,
            )
        return _json(health, status_code=200 if health.status == "healthy" else 503)

    @router.get(
        "/database/tables",
        response_model=DatabaseTablesResponse,
        responses=_ERROR_RESPONSES,
    )
    async def get_database_tables() -> JSONResponse:
        return await _respond(section="database tables", compute=metrics_service.database_tables)

    return router


async def _respond(
    *,
    section: str,
    compute: Callable[[], Awaitable[BaseModel]],
) -> JSONResponse:
    try:
        payload = await compute()
    except Exception as error:  # noqa: BLE001
        logger.exception("metrics_request_failed section=%s", section)
        return _json(
            ErrorResponse(error=f"Failed to fetch {section}", message=str(error)),
            status_code=500,
        )
    return _json(payload, status_code=200)


def _json(model: BaseModel, *, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True),
    )

"""dashboard-api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from agent_insights.application.ports.chat_metrics_query_port import ChatMetricsQueryPort
from agent_insights.application.ports.workflow_api_port import WorkflowApiPort
from agent_insights.application.services.dashboard_metrics_service import (
    DashboardMetricsService,
)
from agent_insights.config.settings import Settings, load_settings
from agent_insights.infrastructure.db.chat_metrics_queries import SqlAlchemyChatMetricsQueries
from agent_insights.infrastructure.db.session import create_engine, create_session_factory
from agent_insights.infrastructure.http.metrics_router import build_metrics_router
from agent_insights.infrastructure.logging import configure_logging
from agent_insights.infrastructure.n8n.http_client import N8nHttpClient

DASHBOARD_API_HOST = "0.0.0.0"
DASHBOARD_API_PORT = 8000
logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Build the process-wide engine and connection pool from settings."""

    return create_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        pool_timeout_seconds=settings.database_pool_timeout_seconds,
        pool_recycle_seconds=settings.database_pool_recycle_seconds,
        connect_timeout_seconds=settings.database_connect_timeout_seconds,
        use_ssl=settings.database_ssl,
    )


def build_chat_metrics(engine: AsyncEngine, settings: Settings) -> SqlAlchemyChatMetricsQueries:
    """Build chat-store query adapter bound to the shared engine."""

    return SqlAlchemyChatMetricsQueries(
        create_session_factory(engine),
        bot_message_source=settings.bot_message_source,
        default_channel_name=settings.default_channel_name,
    )


def build_workflow_api(settings: Settings) -> N8nHttpClient:
    """Build n8n HTTP adapter for the configured workflow."""

    return N8nHttpClient(
        base_url=settings.n8n_base_url,
        api_key=settings.n8n_api_key,
        workflow_id=settings.n8n_workflow_id,
        timeout_seconds=settings.n8n_timeout_seconds,
    )


def create_app(
    *,
    chat_metrics: ChatMetricsQueryPort | None = None,
    workflow_api: WorkflowApiPort | None = None,
    timezone_name: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create FastAPI app serving dashboard metrics.

    Missing collaborators are built from settings; an engine created here is
    disposed when the app shuts down.
    """

    settings = None
    if chat_metrics is None or workflow_api is None or timezone_name is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if timezone_name is None:
            timezone_name = settings.dashboard_timezone

    owned_engine: AsyncEngine | None = None
    if chat_metrics is None:
        assert settings is not None
        owned_engine = build_engine(settings)
        chat_metrics = build_chat_metrics(owned_engine, settings)
    if workflow_api is None:
        assert settings is not None
        workflow_api = build_workflow_api(settings)

    assert timezone_name is not None

    metrics_service = DashboardMetricsService(
        chat_metrics=chat_metrics,
        workflow_api=workflow_api,
        timezone_name=timezone_name,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("dashboard_api_started timezone=%s", timezone_name)
        yield
        if owned_engine is not None:
            await owned_engine.dispose()
            logger.info("dashboard_api_engine_disposed")

    app = FastAPI(title="Agent Insights API", lifespan=lifespan)
    app.include_router(build_metrics_router(metrics_service=metrics_service))
    return app


def run_asgi_server(*, host: str = DASHBOARD_API_HOST, port: int = DASHBOARD_API_PORT) -> None:
    """Run dashboard-api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.dashboard_api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run dashboard-api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()

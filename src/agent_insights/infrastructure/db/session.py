"""Async SQLAlchemy engine and session factory helpers."""

from __future__ import annotations

import ssl

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def create_engine(
    database_url: str,
    *,
    pool_size: int | None = None,
    pool_timeout_seconds: float | None = None,
    pool_recycle_seconds: int | None = None,
    connect_timeout_seconds: float | None = None,
    use_ssl: bool = False,
) -> AsyncEngine:
    """Create the process-wide async engine and its bounded connection pool."""

    engine_options: dict[str, object] = {"pool_pre_ping": True}
    if pool_size is not None:
        engine_options["pool_size"] = pool_size
        engine_options["max_overflow"] = 0
    if pool_timeout_seconds is not None:
        engine_options["pool_timeout"] = pool_timeout_seconds
    if pool_recycle_seconds is not None:
        engine_options["pool_recycle"] = pool_recycle_seconds

    connect_args: dict[str, object] = {}
    if make_url(database_url).get_driver_name() == "asyncpg":
        if connect_timeout_seconds is not None:
            connect_args["timeout"] = connect_timeout_seconds
        if use_ssl:
            connect_args["ssl"] = _unverified_ssl_context()
    if connect_args:
        engine_options["connect_args"] = connect_args

    return create_async_engine(database_url, **engine_options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a reusable async session factory bound to the provided engine."""

    return async_sessionmaker(engine, expire_on_commit=False)


def _unverified_ssl_context() -> ssl.SSLContext:
    # DATABASE_SSL encrypts the connection without verifying the server certificate.
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context

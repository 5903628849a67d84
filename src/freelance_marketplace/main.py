"""FastAPI application entry point for the Freelance Marketplace.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve REST API + MCP tools on a single Uvicorn process.
    3. Shutdown: Close outbound HTTP clients, database and Redis connections.

The MCP server is mounted at /mcp so agents can discover tools alongside the
REST API at /api/*.

Run with:
    uv run uvicorn freelance_marketplace.main:app --reload --host 0.0.0.0 --port 3002
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from freelance_marketplace.config import get_settings
from freelance_marketplace.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        network=settings.stellar_network_name,
        escrow_enabled=settings.escrow_configured,
    )

    # 2. Initialize database
    from freelance_marketplace.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis (optional: only submission idempotency depends on it)
    from freelance_marketplace.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    from freelance_marketplace.infrastructure.clients import close_clients

    logger.info("app.shutting_down")
    await close_clients()
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Freelance Marketplace",
        description=(
            "Job lifecycle and Stellar payment settlement for a freelance marketplace."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from freelance_marketplace.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from freelance_marketplace.api.routes.health import router as health_router
    from freelance_marketplace.api.routes.jobs import router as jobs_router
    from freelance_marketplace.api.routes.tips import router as tips_router
    from freelance_marketplace.api.routes.users import router as users_router

    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(tips_router)
    app.include_router(users_router)

    # --- MCP Server (mounted as sub-application) ---
    from freelance_marketplace.mcp_server.tools import mcp

    mcp_app = mcp.sse_app()
    app.mount("/mcp", mcp_app)

    return app


# The app instance used by Uvicorn
app = create_app()

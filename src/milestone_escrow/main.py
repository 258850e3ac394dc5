"""FastAPI application entry point for the milestone escrow engine.

Lifecycle:
    1. Startup: Initialize logging and the database, build the services.
    2. Running: Serve the REST API at /api/v1/* on a single Uvicorn process.
    3. Shutdown: Dispose of the database engine.

Run with:
    uvicorn milestone_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from milestone_escrow import __version__
from milestone_escrow.config import get_settings
from milestone_escrow.logging_config import get_logger, setup_logging

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
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    if settings.platform_wallet_id is None:
        logger.critical("app.platform_wallet_missing")
        raise RuntimeError("PLATFORM_WALLET_ID must be set before the service can start")

    # 2. Initialize database
    from milestone_escrow.infrastructure.database.engine import (
        _get_engine,
        close_db,
        get_ledger_store,
        init_db,
    )

    await init_db()

    # 3. Build services
    from milestone_escrow.services import AccountService, EscrowService, WalletService

    store = get_ledger_store()
    wallet_service = WalletService()
    app.state.engine = _get_engine()
    app.state.escrow_service = EscrowService(
        store,
        platform_wallet_id=settings.platform_wallet_id,
        fee_rate=settings.platform_fee_rate,
        wallet_service=wallet_service,
    )
    app.state.account_service = AccountService(store, wallet_service=wallet_service)

    logger.info(
        "app.started",
        host=settings.app_host,
        port=settings.app_port,
        platform_wallet_id=str(settings.platform_wallet_id),
        fee_rate=str(settings.platform_fee_rate),
    )

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Milestone Escrow",
        description="Milestone escrow and double-entry wallet ledger for a freelance marketplace.",
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from milestone_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from milestone_escrow.api.routes.admin import router as admin_router
    from milestone_escrow.api.routes.escrow import router as escrow_router
    from milestone_escrow.api.routes.health import router as health_router
    from milestone_escrow.api.routes.wallets import router as wallets_router

    app.include_router(health_router)
    app.include_router(escrow_router)
    app.include_router(wallets_router)
    app.include_router(admin_router)

    return app


# The app instance used by Uvicorn
app = create_app()
